"""
Seed the local cache with the bundled project snapshot.

Does nothing when the cache already holds a project list unless --force is
given.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from portfolio.config import get_settings
from portfolio.errors import StoreError
from portfolio.state import AppState

logger = logging.getLogger(__name__)


def seed(state: AppState, force: bool = False) -> int:
    """Copy the snapshot's projects into the cache; returns how many."""
    cache = state.local_cache
    if cache.has_projects() and not force:
        logger.info("Local cache already holds projects; nothing to do")
        return 0
    if state.projects_snapshot is None:
        return 0
    projects = state.projects_snapshot.list_projects()
    cache.replace_projects(projects)
    content = state.content_snapshot.get_content() if state.content_snapshot else None
    if content and (force or cache.get_content() is None):
        cache.save_content(content)
    return len(projects)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the local cache from JSON")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing cached project list",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    if not settings.local_cache_path and not settings.redis_url:
        logger.error("Set PORTFOLIO_LOCAL_CACHE_PATH or REDIS_URL first")
        return 1
    with AppState.open(settings) as state:
        try:
            count = seed(state, force=args.force)
        except StoreError as exc:
            logger.error("Seeding failed: %s", exc)
            return 1
    logger.info("Seeded %d projects", count)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

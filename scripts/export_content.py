"""
Load the site content through the source waterfall and write it as JSON.
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
from portfolio.reconcile import Reconciler
from portfolio.state import AppState

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Export the site content document")
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default="content.json",
        help="Where to write the document ('-' for stdout)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    with AppState.open(get_settings()) as state:
        reconciler = Reconciler(state)
        document = reconciler.load_content()
        payload = reconciler.export_content()

    if not document:
        logger.warning("No content found in any source; exporting an empty document")

    if args.output == "-":
        sys.stdout.write(payload + "\n")
    else:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
        logger.info("Wrote %d keys to %s", len(document), args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""
Dependency wiring for the FastAPI app.

Backends are built once in ``create_app`` and kept on ``app.state``; the
functions here read them back per request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, Request

from portfolio.config import Settings
from portfolio.db import (
    ContentStore,
    InMemoryContentStore,
    InMemoryProjectStore,
    PostgresContentStore,
    PostgresProjectStore,
    ProjectStore,
)
from portfolio.snapshot import (
    JsonContentStore,
    JsonProjectStore,
    content_snapshot_path,
    projects_snapshot_path,
)
from portfolio.state import build_blob_store, storage_config_from
from portfolio.storage import BlobStore, InMemoryBlobStore, LocalDiskBlobStore

logger = logging.getLogger(__name__)


@dataclass
class ServerBackends:
    content_store: ContentStore
    project_store: ProjectStore
    # Used when object storage is missing or an upload to it fails.
    disk_store: BlobStore
    admin_password: str
    blob_store: Optional[BlobStore] = None

    def close(self) -> None:
        for store in (self.content_store, self.project_store):
            close = getattr(store, "close", None)
            if close:
                close()


def build_backends(settings: Settings) -> ServerBackends:
    disk_store = LocalDiskBlobStore(site_root=settings.site_root)
    if settings.use_in_memory_backends:
        return ServerBackends(
            content_store=InMemoryContentStore(),
            project_store=InMemoryProjectStore(),
            disk_store=disk_store,
            admin_password=settings.admin_password,
            blob_store=InMemoryBlobStore(),
        )
    if settings.database_url:
        content_store = PostgresContentStore(settings.database_url)
        project_store = PostgresProjectStore(settings.database_url)
        logger.info("Serving content from the database")
    else:
        content_store = JsonContentStore(content_snapshot_path(settings.site_root))
        project_store = JsonProjectStore(projects_snapshot_path(settings.site_root))
        logger.warning(
            "DATABASE_URL not configured, serving JSON files under %s",
            settings.site_root,
        )
    return ServerBackends(
        content_store=content_store,
        project_store=project_store,
        disk_store=disk_store,
        admin_password=settings.admin_password,
        blob_store=build_blob_store(storage_config_from(settings)),
    )


def get_backends(request: Request) -> ServerBackends:
    return request.app.state.backends


def get_content_store(request: Request) -> ContentStore:
    return get_backends(request).content_store


def get_project_store(request: Request) -> ProjectStore:
    return get_backends(request).project_store


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_admin(
    request: Request,
    x_admin_pass: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
) -> None:
    """
    Gate write endpoints on the shared admin password, sent as
    ``X-Admin-Pass`` or ``Authorization: Bearer <password>``.
    """
    supplied = x_admin_pass or _bearer(authorization)
    if not supplied or supplied != get_backends(request).admin_password:
        raise HTTPException(status_code=401, detail="Unauthorized")

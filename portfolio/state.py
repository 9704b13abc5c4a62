"""
Backend selection and the admin client's application state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from portfolio.api_client import ApiClient
from portfolio.config import Settings, get_settings
from portfolio.db import (
    ContentStore,
    InMemoryContentStore,
    InMemoryProjectStore,
    PostgresContentStore,
    PostgresProjectStore,
    ProjectStore,
)
from portfolio.local_cache import (
    FileKeyValueStore,
    KeyValueStore,
    LocalCache,
    RedisKeyValueStore,
)
from portfolio.models import ContentDocument, Project
from portfolio.snapshot import (
    JsonContentStore,
    JsonProjectStore,
    content_snapshot_path,
    projects_snapshot_path,
)
from portfolio.storage import BlobStore, InMemoryBlobStore, S3BlobStore

logger = logging.getLogger(__name__)

ContentListener = Callable[[ContentDocument], None]


@dataclass(frozen=True)
class StorageConfig:
    bucket: str
    region: str = ""
    endpoint: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    public_base_url: Optional[str] = None


@dataclass(frozen=True)
class RemoteBackend:
    """Remote database (and object storage when configured).

    A ``database_url`` of ``None`` selects in-memory stores, for development.
    """

    database_url: Optional[str]
    storage: Optional[StorageConfig] = None


@dataclass(frozen=True)
class LocalOnlyBackend:
    """No remote database: edits persist to the HTTP API or the local cache."""


BackendConfig = Union[RemoteBackend, LocalOnlyBackend]


def storage_config_from(settings: Settings) -> Optional[StorageConfig]:
    if not settings.storage_bucket:
        return None
    return StorageConfig(
        bucket=settings.storage_bucket,
        region=settings.storage_region or "",
        endpoint=settings.storage_endpoint or "",
        access_key_id=settings.aws_access_key_id or "",
        secret_access_key=settings.aws_secret_access_key or "",
        public_base_url=settings.storage_public_base_url,
    )


def resolve_backend(settings: Settings) -> BackendConfig:
    """Pick the backend once, at startup."""
    if settings.use_in_memory_backends:
        return RemoteBackend(database_url=None)
    if settings.database_url:
        return RemoteBackend(
            database_url=settings.database_url,
            storage=storage_config_from(settings),
        )
    return LocalOnlyBackend()


def build_blob_store(storage: Optional[StorageConfig]) -> Optional[BlobStore]:
    if storage is None:
        return None
    return S3BlobStore(
        bucket=storage.bucket,
        region=storage.region,
        endpoint=storage.endpoint,
        access_key_id=storage.access_key_id,
        secret_access_key=storage.secret_access_key,
        public_base_url=storage.public_base_url,
    )


def build_local_cache(settings: Settings) -> LocalCache:
    backend: Optional[KeyValueStore] = None
    if settings.redis_url:
        backend = RedisKeyValueStore(
            url=settings.redis_url, key_prefix=settings.redis_key_prefix
        )
    elif settings.local_cache_path:
        backend = FileKeyValueStore(path=settings.local_cache_path)
    return LocalCache(backend)


@dataclass
class AppState:
    """
    Everything the reconciliation layer works against: the resolved backend,
    its stores, the working content document, the last loaded project list
    and the content listeners.
    """

    backend: BackendConfig
    local_cache: LocalCache
    settings: Settings = field(default_factory=Settings)
    content_store: Optional[ContentStore] = None
    project_store: Optional[ProjectStore] = None
    blob_store: Optional[BlobStore] = None
    api: Optional[ApiClient] = None
    content_snapshot: Optional[ContentStore] = None
    projects_snapshot: Optional[ProjectStore] = None
    content: ContentDocument = field(default_factory=dict)
    projects: list[Project] = field(default_factory=list)
    listeners: list[ContentListener] = field(default_factory=list)

    @classmethod
    def open(cls, settings: Optional[Settings] = None) -> "AppState":
        settings = settings or get_settings()
        backend = resolve_backend(settings)
        state = cls(
            backend=backend,
            local_cache=build_local_cache(settings),
            settings=settings,
            content_snapshot=JsonContentStore(content_snapshot_path(settings.site_root)),
            projects_snapshot=JsonProjectStore(
                projects_snapshot_path(settings.site_root)
            ),
        )
        if isinstance(backend, RemoteBackend):
            if backend.database_url is None:
                state.content_store = InMemoryContentStore()
                state.project_store = InMemoryProjectStore()
                state.blob_store = InMemoryBlobStore()
            else:
                state.content_store = PostgresContentStore(backend.database_url)
                state.project_store = PostgresProjectStore(backend.database_url)
                state.blob_store = build_blob_store(backend.storage)
        if settings.api_base_url:
            state.api = ApiClient(
                settings.api_base_url,
                settings.admin_password,
                api_prefix=settings.api_prefix,
                timeout=settings.api_timeout_seconds,
            )
        logger.info(
            "Admin state opened with %s backend", type(backend).__name__
        )
        return state

    @property
    def is_remote(self) -> bool:
        return isinstance(self.backend, RemoteBackend)

    def subscribe(self, listener: ContentListener) -> Callable[[], None]:
        self.listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe

    def notify(self) -> None:
        for listener in list(self.listeners):
            listener(self.content)

    def close(self) -> None:
        for store in (self.content_store, self.project_store):
            close = getattr(store, "close", None)
            if close:
                close()
        if self.api is not None:
            self.api.session.close()
        self.listeners.clear()

    def __enter__(self) -> "AppState":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

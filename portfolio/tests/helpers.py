from portfolio.config import Settings
from portfolio.db import InMemoryContentStore, InMemoryProjectStore
from portfolio.local_cache import InMemoryKeyValueStore, LocalCache
from portfolio.state import AppState, LocalOnlyBackend, RemoteBackend
from portfolio.storage import InMemoryBlobStore


def remote_state(**overrides) -> AppState:
    values = dict(
        backend=RemoteBackend(database_url=None),
        local_cache=LocalCache(InMemoryKeyValueStore()),
        settings=Settings(),
        content_store=InMemoryContentStore(),
        project_store=InMemoryProjectStore(),
        blob_store=InMemoryBlobStore(),
    )
    values.update(overrides)
    return AppState(**values)


def local_state(**overrides) -> AppState:
    values = dict(
        backend=LocalOnlyBackend(),
        local_cache=LocalCache(InMemoryKeyValueStore()),
        settings=Settings(),
    )
    values.update(overrides)
    return AppState(**values)

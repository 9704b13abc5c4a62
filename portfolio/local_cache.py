"""
Local key-value cache mirroring the last-known-good content and projects.

Supports an in-memory store for tests, a JSON file for single-machine use and
Redis for shared deployments. Values are JSON strings under namespaced keys,
the same layout the site's browser storage uses.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from portfolio.errors import NotFoundError, StoreError
from portfolio.models import ContentDocument, Project

logger = logging.getLogger(__name__)

PROJECTS_KEY = "nb_projects_data"
CONTENT_KEY = "nb_content_data"
IMAGE_KEY_PREFIX = "img_"


class KeyValueStore(Protocol):
    """Minimal string key-value interface."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


@dataclass
class InMemoryKeyValueStore:
    items: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove(self, key: str) -> None:
        self.items.pop(key, None)


@dataclass
class FileKeyValueStore:
    """All keys in one JSON object on disk, rewritten on every change."""

    path: str

    def _load(self) -> dict[str, str]:
        target = Path(self.path)
        if not target.exists():
            return {}
        try:
            data = json.loads(target.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"Could not read local cache {target}: {exc}") from exc
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, str]) -> None:
        target = Path(self.path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(data), encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Could not write local cache {target}: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


@dataclass
class RedisKeyValueStore:
    """Redis-backed key-value store using plain string keys."""

    url: str
    key_prefix: str = "portfolio:"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def get(self, key: str) -> Optional[str]:
        try:
            value = self.client.get(self.key_prefix + key)
        except redis_exceptions.RedisError as exc:
            raise StoreError(f"Redis get {key} failed: {exc}") from exc
        if value is None:
            return None
        return value.decode("utf-8")

    def set(self, key: str, value: str) -> None:
        try:
            self.client.set(self.key_prefix + key, value)
        except redis_exceptions.RedisError as exc:
            raise StoreError(f"Redis set {key} failed: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            self.client.delete(self.key_prefix + key)
        except redis_exceptions.RedisError as exc:
            raise StoreError(f"Redis delete {key} failed: {exc}") from exc


class LocalCache:
    """
    Typed access to the cached project list, content document and image
    data URLs. Also usable as a content store and a project store, which is
    how local-only mode persists edits.
    """

    def __init__(self, backend: Optional[KeyValueStore] = None):
        self.backend = backend if backend is not None else InMemoryKeyValueStore()

    def _get_json(self, key: str):
        raw = self.backend.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding unparsable local cache entry %s", key)
            return None

    def _set_json(self, key: str, value) -> None:
        self.backend.set(key, json.dumps(value, ensure_ascii=False))

    # Content

    def get_content(self) -> Optional[ContentDocument]:
        data = self._get_json(CONTENT_KEY)
        return data if isinstance(data, dict) else None

    def save_content(self, document: ContentDocument) -> ContentDocument:
        self._set_json(CONTENT_KEY, document)
        return document

    # Projects

    def has_projects(self) -> bool:
        return self.backend.get(PROJECTS_KEY) is not None

    def list_projects(self) -> list[Project]:
        data = self._get_json(PROJECTS_KEY)
        if not isinstance(data, list):
            return []
        return [Project.from_dict(item) for item in data if isinstance(item, dict)]

    def replace_projects(self, projects: list[Project]) -> None:
        self._set_json(PROJECTS_KEY, [project.as_dict() for project in projects])

    def get_project(self, project_id: int) -> Optional[Project]:
        for project in self.list_projects():
            if project.id == project_id:
                return project
        return None

    def save_project(self, project: Project) -> Project:
        projects = self.list_projects()
        if project.id is None:
            taken = {existing.id for existing in projects}
            new_id = int(time.time() * 1000)
            while new_id in taken:
                new_id += 1
            saved = Project.from_dict({**project.as_dict(), "id": new_id})
            projects.append(saved)
        else:
            for index, existing in enumerate(projects):
                if existing.id == project.id:
                    projects[index] = saved = project
                    break
            else:
                raise NotFoundError(f"Project {project.id} not found in local cache")
        self.replace_projects(projects)
        return saved

    def mirror_project(self, project: Project) -> None:
        """Replace the cached copy with the same id, or append it."""
        projects = self.list_projects()
        for index, existing in enumerate(projects):
            if existing.id == project.id:
                projects[index] = project
                break
        else:
            projects.append(project)
        self.replace_projects(projects)

    def delete_project(self, project_id: int) -> None:
        projects = self.list_projects()
        self.replace_projects([p for p in projects if p.id != project_id])

    # Images

    def store_image(self, filename: str, data_url: str) -> None:
        self.backend.set(IMAGE_KEY_PREFIX + filename, data_url)

    def get_image(self, filename: str) -> Optional[str]:
        return self.backend.get(IMAGE_KEY_PREFIX + filename)

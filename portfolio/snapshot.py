"""
JSON-file stores for the static site's bundled snapshot.

The admin client reads these files as a low-priority source; the HTTP API
writes them when no database is configured.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Optional

from portfolio.errors import NotFoundError, StoreError
from portfolio.models import ContentDocument, Project

CONTENT_SNAPSHOT = Path("assets") / "misc" / "content.json"
PROJECTS_SNAPSHOT = Path("js") / "projects-data.json"


def content_snapshot_path(site_root: str | Path) -> Path:
    return Path(site_root) / CONTENT_SNAPSHOT


def projects_snapshot_path(site_root: str | Path) -> Path:
    return Path(site_root) / PROJECTS_SNAPSHOT


def _read_json(path: Path) -> Any:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise StoreError(f"Could not read {path}: {exc}") from exc


def _write_json(path: Path, payload: Any) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8"
        )
    except OSError as exc:
        raise StoreError(f"Could not write {path}: {exc}") from exc


class JsonContentStore:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def get_content(self) -> Optional[ContentDocument]:
        data = _read_json(self.path)
        if data is None:
            return None
        if not isinstance(data, dict):
            raise StoreError(f"{self.path} does not hold a JSON object")
        return data

    def save_content(self, document: ContentDocument) -> ContentDocument:
        _write_json(self.path, document)
        return document


class JsonProjectStore:
    """
    Project list kept in one JSON array. New projects get the current time
    in milliseconds as id.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load_raw(self) -> list[dict]:
        data = _read_json(self.path)
        if data is None:
            return []
        if not isinstance(data, list):
            raise StoreError(f"{self.path} does not hold a JSON array")
        return [item for item in data if isinstance(item, dict)]

    def list_projects(self) -> list[Project]:
        return [Project.from_dict(item) for item in self._load_raw()]

    def get_project(self, project_id: int) -> Optional[Project]:
        for item in self._load_raw():
            if item.get("id") == project_id:
                return Project.from_dict(item)
        return None

    def save_project(self, project: Project) -> Project:
        rows = self._load_raw()
        if project.id is None:
            taken = {item.get("id") for item in rows}
            new_id = int(time.time() * 1000)
            while new_id in taken:
                new_id += 1
            saved = Project.from_dict({**project.as_dict(), "id": new_id})
            rows.append(saved.as_dict())
        else:
            for index, item in enumerate(rows):
                if item.get("id") == project.id:
                    merged = {**item, **project.as_dict()}
                    rows[index] = merged
                    saved = Project.from_dict(merged)
                    break
            else:
                raise NotFoundError(f"Project {project.id} not found")
        _write_json(self.path, rows)
        return saved

    def delete_project(self, project_id: int) -> None:
        rows = self._load_raw()
        _write_json(self.path, [item for item in rows if item.get("id") != project_id])

"""
Content and project stores backed by Postgres, plus in-memory test
implementations.
"""

from __future__ import annotations

import copy
import time
from typing import Optional, Protocol

from sqlalchemy import JSON, Column, Float, Integer, String, Text, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from portfolio.config import CONTENT_KEY
from portfolio.errors import NotFoundError, StoreError
from portfolio.models import ContentDocument, Project


class ContentStore(Protocol):
    """Holds the single content document."""

    def get_content(self) -> Optional[ContentDocument]:
        ...

    def save_content(self, document: ContentDocument) -> ContentDocument:
        ...


class ProjectStore(Protocol):
    """Row-per-project CRUD."""

    def list_projects(self) -> list[Project]:
        ...

    def get_project(self, project_id: int) -> Optional[Project]:
        ...

    def save_project(self, project: Project) -> Project:
        ...

    def delete_project(self, project_id: int) -> None:
        ...


class InMemoryContentStore:
    """Simple in-memory content store for development and tests."""

    def __init__(self, document: Optional[ContentDocument] = None):
        self.document: Optional[ContentDocument] = copy.deepcopy(document)

    def get_content(self) -> Optional[ContentDocument]:
        return copy.deepcopy(self.document)

    def save_content(self, document: ContentDocument) -> ContentDocument:
        self.document = copy.deepcopy(document)
        return copy.deepcopy(self.document)


class InMemoryProjectStore:
    """In-memory project table with a database-style id sequence."""

    def __init__(self, projects: Optional[list[Project]] = None):
        self.rows: dict[int, Project] = {}
        self._next_id = 1
        for project in projects or []:
            seeded = copy.deepcopy(project)
            if seeded.id is None:
                seeded.id = self._next_id
            self.rows[seeded.id] = seeded
            self._next_id = max(self._next_id, seeded.id + 1)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.rows.clear()
        self._next_id = 1

    def list_projects(self) -> list[Project]:
        return [
            copy.deepcopy(self.rows[key])
            for key in sorted(self.rows, reverse=True)
        ]

    def get_project(self, project_id: int) -> Optional[Project]:
        project = self.rows.get(project_id)
        return copy.deepcopy(project) if project else None

    def save_project(self, project: Project) -> Project:
        stored = copy.deepcopy(project)
        if stored.id is None:
            stored.id = self._next_id
            self._next_id += 1
        elif stored.id not in self.rows:
            raise NotFoundError(f"Project {stored.id} not found")
        self.rows[stored.id] = stored
        return copy.deepcopy(stored)

    def delete_project(self, project_id: int) -> None:
        self.rows.pop(project_id, None)


class PostgresContentStore:
    """
    SQLAlchemy-backed content store. Accepts any SQLAlchemy URL (e.g.,
    Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, content_key: str = CONTENT_KEY):
        self.content_key = content_key
        self.engine = _create_engine(database_url)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def get_content(self) -> Optional[ContentDocument]:
        try:
            with self.Session() as session:
                row = session.get(SiteContentRow, self.content_key)
                return copy.deepcopy(row.value) if row else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Reading content failed: {exc}") from exc

    def save_content(self, document: ContentDocument) -> ContentDocument:
        try:
            with self.Session() as session:
                row = session.get(SiteContentRow, self.content_key)
                if row:
                    row.value = copy.deepcopy(document)
                    row.updated_at = time.time()
                else:
                    row = SiteContentRow(
                        key=self.content_key,
                        value=copy.deepcopy(document),
                        updated_at=time.time(),
                    )
                    session.add(row)
                session.commit()
                session.refresh(row)
                return copy.deepcopy(row.value)
        except SQLAlchemyError as exc:
            raise StoreError(f"Saving content failed: {exc}") from exc

    def close(self) -> None:
        self.engine.dispose()


class PostgresProjectStore:
    """SQLAlchemy-backed project table; ids come from the database sequence."""

    def __init__(self, database_url: str):
        self.engine = _create_engine(database_url)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_project(self, row: "ProjectRow") -> Project:
        return Project(
            id=row.id,
            title=row.title or "",
            category=row.category or "",
            description=row.description or "",
            plain_description=row.plain_description or "",
            image=row.image or "",
            gallery=list(row.gallery or []),
            video=row.video or "",
        )

    def list_projects(self) -> list[Project]:
        try:
            with self.Session() as session:
                rows = session.execute(
                    select(ProjectRow).order_by(ProjectRow.id.desc())
                ).scalars()
                return [self._to_project(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError(f"Listing projects failed: {exc}") from exc

    def get_project(self, project_id: int) -> Optional[Project]:
        try:
            with self.Session() as session:
                row = session.get(ProjectRow, project_id)
                return self._to_project(row) if row else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Reading project {project_id} failed: {exc}") from exc

    def save_project(self, project: Project) -> Project:
        fields = project.editable_fields()
        try:
            with self.Session() as session:
                if project.id is None:
                    row = ProjectRow(**fields)
                    session.add(row)
                else:
                    row = session.get(ProjectRow, project.id)
                    if not row:
                        raise NotFoundError(f"Project {project.id} not found")
                    for name, value in fields.items():
                        setattr(row, name, value)
                session.commit()
                session.refresh(row)
                return self._to_project(row)
        except SQLAlchemyError as exc:
            raise StoreError(f"Saving project failed: {exc}") from exc

    def delete_project(self, project_id: int) -> None:
        try:
            with self.Session() as session:
                row = session.get(ProjectRow, project_id)
                if row:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Deleting project {project_id} failed: {exc}") from exc

    def close(self) -> None:
        self.engine.dispose()


def _create_engine(database_url: str):
    if not database_url:
        raise ValueError("DATABASE_URL is required for the Postgres stores")
    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


Base = declarative_base()


class SiteContentRow(Base):
    __tablename__ = "site_content"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(Float, nullable=False)


class ProjectRow(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False, default="")
    category = Column(String, nullable=False, default="", index=True)
    description = Column(Text, nullable=False, default="")
    plain_description = Column(Text, nullable=False, default="")
    image = Column(String, nullable=False, default="")
    gallery = Column(JSON, nullable=False, default=list)
    video = Column(String, nullable=False, default="")

"""
Reconciliation of the content document and project list across the remote
database, object storage, the HTTP API, the bundled snapshot and the local
cache.

Reads walk a prioritized list of sources and stop at the first usable
result. Writes upload pending files first and then persist the metadata;
the two steps are not atomic, and a failed persist leaves the uploaded
blobs orphaned.
"""

from __future__ import annotations

import copy
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

from portfolio.config import EmptyRemotePolicy
from portfolio.errors import StoreError, UploadError
from portfolio.formatting import format_description, html_to_text, lines_to_list
from portfolio.gallery import kept_gallery, select_gallery_files
from portfolio.models import (
    SERVICE_CARDS_KEY,
    ContentDocument,
    ContentEdit,
    ContentView,
    PendingFile,
    Project,
    ProjectForm,
    ServiceCard,
    normalize_cards,
)
from portfolio.sources import Source, waterfall
from portfolio.state import AppState
from portfolio.storage import BlobStore, build_storage_path, sanitize_filename, upload_and_link

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROJECT_IMAGE_PREFIX = "projects/images"
PROJECT_GALLERY_PREFIX = "projects/gallery"
SERVICE_ICON_PREFIX = "services/icons"


def upload_prefix(key: str) -> str:
    """Storage folder for a file-backed content field."""
    if key.startswith("brochure") and key.endswith(".pdf_path"):
        return "brochures"
    if key.startswith("brochure") and key.endswith(".image_path"):
        return "brochures/images"
    if key.startswith("services."):
        return "content/services"
    return "content"


@dataclass
class SaveOutcome(Generic[T]):
    ok: bool
    value: Optional[T] = None
    reason: str = ""
    source: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def failed(cls, reason: str, warnings: list[str]) -> "SaveOutcome[T]":
        return cls(ok=False, reason=reason, warnings=list(warnings))


class UploadSaga:
    """
    First phase of a two-phase save: uploads blobs and remembers their
    paths. ``compensate`` runs when the metadata write fails; it only logs
    the orphans, deleting them is left for later.
    """

    def __init__(self, blob_store: Optional[BlobStore]):
        self.blob_store = blob_store
        self.uploaded: list[str] = []

    def upload(self, prefix: str, pending: PendingFile) -> str:
        if self.blob_store is None:
            raise UploadError("No object storage configured")
        path = build_storage_path(prefix, pending.filename)
        url = upload_and_link(
            self.blob_store, path, pending.data, pending.content_type or ""
        )
        self.uploaded.append(path)
        return url

    def compensate(self, reason: str) -> None:
        for path in self.uploaded:
            logger.warning("Orphaned upload %s left in storage (%s)", path, reason)


def apply_content_edit(document: ContentDocument, edit: ContentEdit) -> ContentDocument:
    for key, value in edit.values.items():
        document[key] = value
    for key, markup in edit.html.items():
        document[key] = markup or ""
    for key, text in edit.lines.items():
        document[key] = lines_to_list(text)
    return document


def describe(form: ProjectForm) -> tuple[str, str]:
    """Return ``(html, plain_text)`` for the form's description."""
    if form.rich_text:
        markup = (form.description or "").strip()
        return markup, html_to_text(markup)
    plain = form.description or ""
    return format_description(plain), plain


class Reconciler:
    """Load and save operations over an explicit :class:`AppState`."""

    def __init__(self, state: AppState):
        self.state = state

    # -- content: read path -------------------------------------------------

    def _content_readers(self) -> list[Source[Optional[ContentDocument]]]:
        state = self.state
        readers: list[Source[Optional[ContentDocument]]] = []
        if state.is_remote and state.content_store is not None:
            readers.append(Source("remote", state.content_store.get_content, remote=True))
        if state.api is not None:
            readers.append(Source("api", state.api.get_content, remote=True))
        if state.content_snapshot is not None:
            readers.append(Source("snapshot", state.content_snapshot.get_content))
        readers.append(Source("local", state.local_cache.get_content))
        return readers

    def load_content(self) -> ContentDocument:
        """
        Load the content document from the first source that has one.
        Falls back to an empty document when every source fails.
        """
        result, source = waterfall(self._content_readers(), action="load content")
        if not result.ok:
            logger.warning("No content source available: %s", result.reason)
            self.state.content = {}
            return self.state.content

        self.state.content = normalize_cards(copy.deepcopy(result.value))
        if source.remote:
            self._mirror_content(self.state.content)
        return self.state.content

    def _mirror_content(self, document: ContentDocument) -> None:
        try:
            self.state.local_cache.save_content(document)
        except StoreError as exc:
            logger.warning("Could not mirror content into the local cache: %s", exc)

    # -- content: write path ------------------------------------------------

    def _content_writers(
        self, document: ContentDocument
    ) -> list[tuple[Source[ContentDocument], Any]]:
        state = self.state
        writers: list[tuple[Source[ContentDocument], Any]] = []
        if state.is_remote and state.content_store is not None:
            store = state.content_store
            writers.append(
                (
                    Source(
                        "remote",
                        lambda: store.save_content(document),
                        remote=True,
                        stop_on_auth=True,
                    ),
                    store,
                )
            )
        if state.api is not None:
            api = state.api
            writers.append(
                (
                    Source(
                        "api",
                        lambda: api.save_content(document),
                        remote=True,
                        stop_on_auth=True,
                    ),
                    api,
                )
            )
        cache = state.local_cache
        writers.append((Source("local", lambda: cache.save_content(document)), cache))
        return writers

    def save_content(self, edit: ContentEdit) -> SaveOutcome[ContentDocument]:
        """
        Copy the editor's fields into the document, upload pending files,
        persist the whole document and re-read it from the store that took
        the write. On failure the working copy is left untouched.
        """
        previous = self.state.content
        document = apply_content_edit(copy.deepcopy(previous), edit)
        warnings: list[str] = []
        saga = UploadSaga(self.state.blob_store)

        for key, pending in edit.files.items():
            try:
                document[key] = saga.upload(upload_prefix(key), pending)
            except UploadError as exc:
                logger.warning("Upload for %s failed: %s", key, exc)
                warnings.append(f"Upload of {pending.filename} failed: {exc}")

        return self._persist_content(document, saga, warnings)

    def _persist_content(
        self, document: ContentDocument, saga: UploadSaga, warnings: list[str]
    ) -> SaveOutcome[ContentDocument]:
        writers = self._content_writers(document)
        stores = {source.name: store for source, store in writers}
        result, source = waterfall(
            [source for source, _ in writers], accept=lambda _: True, action="save content"
        )
        if not result.ok:
            saga.compensate(result.reason)
            return SaveOutcome.failed(result.reason, warnings)

        fresh = self._reread_content(source.name, stores[source.name])
        if fresh is None:
            fresh = result.value if isinstance(result.value, dict) else document
        self.state.content = normalize_cards(copy.deepcopy(fresh))
        if source.remote:
            self._mirror_content(self.state.content)
        self.state.notify()
        return SaveOutcome(
            ok=True, value=self.state.content, source=source.name, warnings=warnings
        )

    def _reread_content(self, name: str, store) -> Optional[ContentDocument]:
        reread = Source(name, store.get_content).run()
        if reread.ok and isinstance(reread.value, dict):
            return reread.value
        logger.warning("Re-reading content from %s failed: %s", name, reread.reason)
        return None

    # -- service cards ------------------------------------------------------

    def save_service_card(
        self, card: ServiceCard, icon: Optional[PendingFile] = None
    ) -> SaveOutcome[ContentDocument]:
        """Insert or replace a service card by id, then save the document."""
        warnings: list[str] = []
        saga = UploadSaga(self.state.blob_store)
        if icon is not None:
            try:
                card.icon = saga.upload(SERVICE_ICON_PREFIX, icon)
            except UploadError as exc:
                logger.warning("Icon upload failed, embedding data URL: %s", exc)
                warnings.append(f"Upload of {icon.filename} failed, icon embedded inline")
                card.icon = icon.to_data_url()

        cards = ContentView(self.state.content).cards()
        for index, existing in enumerate(cards):
            if existing.id == card.id:
                cards[index] = card
                break
        else:
            cards.append(card)

        document = copy.deepcopy(self.state.content)
        document[SERVICE_CARDS_KEY] = [c.as_dict() for c in cards]
        return self._persist_content(document, saga, warnings)

    def delete_service_card(self, card_id: str) -> SaveOutcome[ContentDocument]:
        cards = ContentView(self.state.content).cards()
        remaining = [card for card in cards if card.id != card_id]
        if len(remaining) == len(cards):
            return SaveOutcome.failed(f"Service card {card_id} not found", [])
        document = copy.deepcopy(self.state.content)
        document[SERVICE_CARDS_KEY] = [card.as_dict() for card in remaining]
        return self._persist_content(document, UploadSaga(None), [])

    def export_content(self) -> str:
        return json.dumps(self.state.content, indent=2, ensure_ascii=False)

    # -- projects: read path ------------------------------------------------

    def _project_list_readers(self) -> list[Source[list[Project]]]:
        state = self.state
        authoritative = (
            state.settings.empty_remote_projects == EmptyRemotePolicy.AUTHORITATIVE
        )
        readers: list[Source[list[Project]]] = []
        if state.is_remote and state.project_store is not None:
            readers.append(
                Source(
                    "remote",
                    state.project_store.list_projects,
                    remote=True,
                    accept_empty=authoritative,
                )
            )
        if state.api is not None:
            readers.append(
                Source(
                    "api",
                    state.api.list_projects,
                    remote=True,
                    accept_empty=authoritative,
                )
            )
        readers.append(Source("local", state.local_cache.list_projects))
        if state.projects_snapshot is not None:
            readers.append(Source("snapshot", state.projects_snapshot.list_projects))
        return readers

    def load_projects(self) -> list[Project]:
        """
        Load projects from the first usable source, in the order that
        source returns them.
        """
        result, source = waterfall(self._project_list_readers(), action="load projects")
        if not result.ok:
            logger.warning("No project source available: %s", result.reason)
            self.state.projects = []
            return []

        self.state.projects = list(result.value)
        if source.remote or source.name == "snapshot":
            self._mirror_projects(self.state.projects, seed_only=source.name == "snapshot")
        return self.state.projects

    def _mirror_projects(self, projects: list[Project], seed_only: bool = False) -> None:
        cache = self.state.local_cache
        try:
            if seed_only and cache.has_projects():
                return
            cache.replace_projects(projects)
        except StoreError as exc:
            logger.warning("Could not mirror projects into the local cache: %s", exc)

    def get_project(self, project_id: int) -> Optional[Project]:
        state = self.state
        readers: list[Source[Optional[Project]]] = []
        if state.is_remote and state.project_store is not None:
            store = state.project_store
            readers.append(Source("remote", lambda: store.get_project(project_id)))
        if state.api is not None:
            api = state.api
            readers.append(Source("api", lambda: api.get_project(project_id)))
        cache = state.local_cache
        readers.append(Source("local", lambda: cache.get_project(project_id)))
        if state.projects_snapshot is not None:
            snapshot = state.projects_snapshot
            readers.append(Source("snapshot", lambda: snapshot.get_project(project_id)))
        result, _ = waterfall(readers, action=f"get project {project_id}")
        return result.value if result.ok else None

    # -- projects: write path -----------------------------------------------

    def save_project(self, form: ProjectForm) -> SaveOutcome[Project]:
        """
        Upload the cover and new gallery images, then insert (no id) or
        update the project and mirror the stored row into the local cache.
        """
        warnings: list[str] = []
        settings = self.state.settings
        description, plain_description = describe(form)
        project = Project(
            id=form.id,
            title=(form.title or "").strip(),
            category=form.category or "",
            description=description,
            plain_description=plain_description,
            image=form.image or "",
            video=(form.video or "").strip(),
        )
        saga = UploadSaga(self.state.blob_store)
        attachments: dict[str, Any] = {}
        inline_image: Optional[str] = None

        if form.cover_file is not None:
            cover = form.cover_file
            try:
                project.image = saga.upload(PROJECT_IMAGE_PREFIX, cover)
            except UploadError as exc:
                logger.warning("Cover upload failed, sending inline: %s", exc)
                if self.state.is_remote:
                    warnings.append(f"Cover image {cover.filename} was not uploaded: {exc}")
                inline_image = cover.to_data_url()
                attachments["imageBase64"] = inline_image
                attachments["imageFilename"] = cover.filename
                self._cache_image(cover.filename, inline_image)

        gallery = kept_gallery(form.existing_gallery, form.removed_gallery)
        selection = select_gallery_files(
            form.gallery_files,
            existing_count=len(gallery),
            max_files=settings.gallery_max_files,
            max_file_size=settings.gallery_max_file_size,
        )
        warnings.extend(selection.warnings)
        inline_gallery: list[PendingFile] = []
        for pending in selection.accepted:
            if self.state.blob_store is None:
                inline_gallery.append(pending)
                continue
            try:
                gallery.append(saga.upload(PROJECT_GALLERY_PREFIX, pending))
            except UploadError as exc:
                logger.warning("Gallery upload of %s failed: %s", pending.filename, exc)
                warnings.append(f"Failed to upload gallery image: {pending.filename}")
        if inline_gallery:
            attachments["galleryBase64"] = [
                {"filename": pending.filename, "dataUrl": pending.to_data_url()}
                for pending in inline_gallery
            ]
        project.gallery = gallery

        local_project = copy.deepcopy(project)
        if inline_image:
            local_project.image = inline_image
        local_project.gallery.extend(p.to_data_url() for p in inline_gallery)

        result, source = waterfall(
            self._project_writers(project, local_project, attachments),
            accept=lambda _: True,
            action="save project",
        )
        if not result.ok:
            saga.compensate(result.reason)
            return SaveOutcome.failed(result.reason, warnings)

        if source.name == "remote":
            # The database row never carries inline images.
            warnings.extend(
                f"Failed to upload gallery image: {pending.filename}"
                for pending in inline_gallery
            )

        saved = result.value
        if source.name != "local":
            self._mirror_project(saved)
        self._remember_project(saved)
        return SaveOutcome(ok=True, value=saved, source=source.name, warnings=warnings)

    def _project_writers(
        self, project: Project, local_project: Project, attachments: dict
    ) -> list[Source[Project]]:
        state = self.state
        writers: list[Source[Project]] = []
        if state.is_remote and state.project_store is not None:
            store = state.project_store
            writers.append(
                Source(
                    "remote",
                    lambda: store.save_project(project),
                    remote=True,
                    stop_on_auth=True,
                )
            )
        if state.api is not None:
            api = state.api
            writers.append(
                Source(
                    "api",
                    lambda: api.save_project(project, attachments),
                    remote=True,
                    stop_on_auth=True,
                )
            )
        if not state.is_remote:
            cache = state.local_cache
            writers.append(Source("local", lambda: cache.save_project(local_project)))
        return writers

    def delete_project(self, project_id: int) -> SaveOutcome[int]:
        state = self.state
        writers: list[Source[None]] = []
        if state.is_remote and state.project_store is not None:
            store = state.project_store
            writers.append(
                Source("remote", lambda: store.delete_project(project_id), stop_on_auth=True)
            )
        if state.api is not None:
            api = state.api
            writers.append(
                Source("api", lambda: api.delete_project(project_id), stop_on_auth=True)
            )
        if not state.is_remote:
            cache = state.local_cache
            writers.append(Source("local", lambda: cache.delete_project(project_id)))

        result, source = waterfall(writers, accept=lambda _: True, action="delete project")
        if not result.ok:
            return SaveOutcome.failed(result.reason, [])

        if source.name != "local":
            try:
                state.local_cache.delete_project(project_id)
            except StoreError as exc:
                logger.warning("Could not drop project %s from the local cache: %s", project_id, exc)
        state.projects = [p for p in state.projects if p.id != project_id]
        return SaveOutcome(ok=True, value=project_id, source=source.name)

    def _mirror_project(self, project: Project) -> None:
        try:
            self.state.local_cache.mirror_project(project)
        except StoreError as exc:
            logger.warning("Could not mirror project %s into the local cache: %s", project.id, exc)

    def _remember_project(self, project: Project) -> None:
        for index, existing in enumerate(self.state.projects):
            if existing.id == project.id:
                self.state.projects[index] = project
                return
        self.state.projects.append(project)

    def _cache_image(self, filename: str, data_url: str) -> None:
        name = f"{int(time.time() * 1000)}-{sanitize_filename(filename).lower()}"
        try:
            self.state.local_cache.store_image(name, data_url)
        except StoreError as exc:
            logger.warning("Could not store image %s locally: %s", name, exc)

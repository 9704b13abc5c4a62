"""
HTTP routes for the portfolio API.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from portfolio.db import ContentStore, ProjectStore
from portfolio.dependencies import (
    ServerBackends,
    get_backends,
    get_content_store,
    get_project_store,
    require_admin,
)
from portfolio.errors import NotFoundError, StoreError, UploadError
from portfolio.models import BROCHURE_SLOTS, Project
from portfolio.schemas import OkResponse, ProjectPayload, ProjectResponse
from portfolio.storage import build_storage_path, upload_and_link

logger = logging.getLogger(__name__)

router = APIRouter()

DATA_URL_PREFIX = re.compile(r"^data:([^;,]*)?(;[^,]*)?;base64,", re.IGNORECASE)


def _decode_inline(data: str) -> tuple[bytes, Optional[str]]:
    """Decode a base64 string or data URL; returns ``(bytes, content_type)``."""
    value = str(data)
    match = DATA_URL_PREFIX.match(value)
    content_type = None
    if match:
        content_type = match.group(1) or None
        value = value[match.end():]
    try:
        return base64.b64decode(value, validate=True), content_type
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Invalid base64 payload") from exc


def _store_inline(
    backends: ServerBackends,
    prefix: str,
    filename: str,
    data: bytes,
    content_type: str,
) -> str:
    """
    Upload decoded bytes to object storage, falling back to the site's
    assets directory. Returns the public URL or site-relative path.
    """
    path = build_storage_path(prefix, filename)
    if backends.blob_store is not None:
        try:
            return upload_and_link(backends.blob_store, path, data, content_type)
        except UploadError as exc:
            logger.warning("Storage upload of %s failed, writing locally: %s", path, exc)
    return upload_and_link(backends.disk_store, path, data, content_type)


def _store_error(exc: StoreError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail="Not found")
    logger.error("Store failure: %s", exc)
    return HTTPException(status_code=500, detail=str(exc))


@router.get("/ping")
def ping():
    return {"ok": True}


@router.get("/content")
def get_content(store: ContentStore = Depends(get_content_store)) -> dict:
    try:
        return store.get_content() or {}
    except StoreError as exc:
        raise _store_error(exc)


@router.post("/content", dependencies=[Depends(require_admin)])
def save_content(
    value: dict[str, Any] = Body(...),
    backends: ServerBackends = Depends(get_backends),
) -> dict:
    """
    Replace the content document. Brochure PDFs may be embedded as
    ``brochureN_file`` + ``brochureN_file_name``; they are uploaded and the
    URL lands in ``brochureN.pdf_path``.
    """
    for slot in BROCHURE_SLOTS:
        file_key = f"brochure{slot}_file"
        name_key = f"brochure{slot}_file_name"
        if value.get(file_key) and value.get(name_key):
            try:
                data, _ = _decode_inline(value[file_key])
                value[f"brochure{slot}.pdf_path"] = _store_inline(
                    backends,
                    "brochures",
                    str(value[name_key]),
                    data,
                    "application/pdf",
                )
            except (HTTPException, UploadError) as exc:
                logger.error("Embedded brochure %s not stored: %s", slot, exc)
        value.pop(file_key, None)
        value.pop(name_key, None)

    try:
        return backends.content_store.save_content(value)
    except StoreError as exc:
        raise _store_error(exc)


@router.get("/projects", response_model=list[ProjectResponse])
def list_projects(store: ProjectStore = Depends(get_project_store)):
    try:
        return [ProjectResponse.from_project(p) for p in store.list_projects()]
    except StoreError as exc:
        raise _store_error(exc)


@router.get("/projects/{project_id}", response_model=Optional[ProjectResponse])
def get_project(project_id: int, store: ProjectStore = Depends(get_project_store)):
    try:
        project = store.get_project(project_id)
    except StoreError as exc:
        raise _store_error(exc)
    return ProjectResponse.from_project(project) if project else None


def _save_project(payload: ProjectPayload, backends: ServerBackends) -> ProjectResponse:
    store = backends.project_store
    fields = payload.project_fields()

    if payload.image_base64 and payload.image_filename:
        data, content_type = _decode_inline(payload.image_base64)
        try:
            fields["image"] = _store_inline(
                backends,
                "projects/images",
                payload.image_filename,
                data,
                content_type or "application/octet-stream",
            )
        except UploadError as exc:
            logger.error("Project image not stored: %s", exc)
            raise HTTPException(status_code=500, detail=str(exc))

    if payload.gallery_base64:
        gallery = list(fields.get("gallery") or [])
        for entry in payload.gallery_base64:
            name = entry.filename or "gallery.jpg"
            try:
                data, content_type = _decode_inline(entry.data_url)
                gallery.append(
                    _store_inline(
                        backends,
                        "projects/gallery",
                        name,
                        data,
                        content_type or "application/octet-stream",
                    )
                )
            except (HTTPException, UploadError) as exc:
                logger.warning("Gallery upload failed for %s: %s", name, exc)
        fields["gallery"] = gallery

    try:
        if payload.id is None:
            project = Project.from_dict(fields)
        else:
            existing = store.get_project(payload.id)
            if existing is None:
                raise HTTPException(status_code=404, detail="Not found")
            project = Project.from_dict({**existing.as_dict(), **fields, "id": payload.id})
        saved = store.save_project(project)
    except StoreError as exc:
        raise _store_error(exc)
    return ProjectResponse.from_project(saved)


@router.post(
    "/projects",
    response_model=ProjectResponse,
    dependencies=[Depends(require_admin)],
)
def save_project(
    payload: ProjectPayload,
    backends: ServerBackends = Depends(get_backends),
):
    """Insert a project, or update it when the body carries an ``id``."""
    return _save_project(payload, backends)


@router.put(
    "/projects/{project_id}",
    response_model=ProjectResponse,
    dependencies=[Depends(require_admin)],
)
def update_project(
    project_id: int,
    payload: ProjectPayload,
    backends: ServerBackends = Depends(get_backends),
):
    payload.id = project_id
    return _save_project(payload, backends)


@router.delete(
    "/projects/{project_id}",
    response_model=OkResponse,
    dependencies=[Depends(require_admin)],
)
def delete_project(project_id: int, store: ProjectStore = Depends(get_project_store)):
    try:
        store.delete_project(project_id)
    except StoreError as exc:
        raise _store_error(exc)
    return OkResponse(ok=True)

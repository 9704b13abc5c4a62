"""
Client for the thin HTTP API fallback (``/api/content``, ``/api/projects``).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from portfolio.errors import ApiAuthError, ApiError, NotFoundError
from portfolio.models import ContentDocument, Project

logger = logging.getLogger(__name__)


class ApiClient:
    """
    Talks to the portfolio HTTP API. Write calls carry the admin password in
    the ``X-Admin-Pass`` header.
    """

    def __init__(
        self,
        base_url: str,
        admin_password: str,
        *,
        api_prefix: str = "/api",
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/") + "/" + api_prefix.strip("/")
        self.admin_password = admin_password
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(
        self, method: str, path: str, *, admin: bool = False, json: Any = None
    ) -> Any:
        headers = {"Accept": "application/json"}
        if admin:
            headers["X-Admin-Pass"] = self.admin_password
        try:
            response = self.session.request(
                method,
                self._url(path),
                headers=headers,
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ApiError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 401:
            raise ApiAuthError("Unauthorized", status_code=401)
        if response.status_code == 404:
            raise NotFoundError(f"{method} {path}: not found")
        if response.status_code >= 400:
            raise ApiError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"{method} {path} returned invalid JSON") from exc

    def ping(self) -> bool:
        try:
            payload = self._request("GET", "ping")
        except ApiError as exc:
            logger.info("API ping failed: %s", exc)
            return False
        return bool(isinstance(payload, dict) and payload.get("ok"))

    # Content

    def get_content(self) -> Optional[ContentDocument]:
        payload = self._request("GET", "content")
        if payload is None:
            return None
        if not isinstance(payload, dict):
            raise ApiError("GET content did not return an object")
        return payload

    def save_content(self, document: ContentDocument) -> ContentDocument:
        payload = self._request("POST", "content", admin=True, json=document)
        return payload if isinstance(payload, dict) else document

    # Projects

    def list_projects(self) -> list[Project]:
        payload = self._request("GET", "projects")
        if not isinstance(payload, list):
            raise ApiError("GET projects did not return a list")
        return [Project.from_dict(item) for item in payload if isinstance(item, dict)]

    def get_project(self, project_id: int) -> Optional[Project]:
        try:
            payload = self._request("GET", f"projects/{project_id}")
        except NotFoundError:
            return None
        return Project.from_dict(payload) if isinstance(payload, dict) else None

    def save_project(
        self, project: Project, attachments: Optional[dict] = None
    ) -> Project:
        """
        Insert (no id) or update a project. ``attachments`` carries
        ``imageBase64``/``imageFilename``/``galleryBase64`` for the server to
        upload.
        """
        body = project.as_dict()
        if project.id is None:
            body.pop("id")
        body.update(attachments or {})
        payload = self._request("POST", "projects", admin=True, json=body)
        if not isinstance(payload, dict):
            raise ApiError("POST projects did not return an object")
        return Project.from_dict(payload)

    def delete_project(self, project_id: int) -> None:
        self._request("DELETE", f"projects/{project_id}", admin=True)

"""
Blob store abstraction for S3-compatible object storage, the local disk and
in-memory testing.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from portfolio.errors import UploadError

UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class BlobStore(Protocol):
    """Defines the operations the editor flows need from object storage."""

    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> str:
        ...

    def get_public_url(self, path: str) -> str:
        ...


def sanitize_filename(filename: str) -> str:
    name = Path(filename or "").name
    safe = UNSAFE_FILENAME_CHARS.sub("_", name)
    return safe or "file"


def build_storage_path(
    prefix: str, filename: str, now_ms: Optional[int] = None
) -> str:
    """Timestamp-prefixed, sanitized object path under ``prefix``."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix.strip('/')}/{stamp}_{sanitize_filename(filename)}"


def upload_and_link(
    store: BlobStore, path: str, data: bytes, content_type: str
) -> str:
    """Upload ``data`` and return its public URL."""
    stored_path = store.upload(path, data, content_type=content_type, upsert=True)
    url = store.get_public_url(stored_path)
    if not url:
        raise UploadError(f"No public URL returned for {stored_path}")
    return url


def _check_relative(path: str) -> str:
    clean = path.strip("/")
    if not clean or any(part in ("", ".", "..") for part in clean.split("/")):
        raise UploadError(f"Invalid storage path: {path!r}")
    return clean


@dataclass
class InMemoryBlobStore:
    """Test double for blob storage."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)

    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> str:
        path = _check_relative(path)
        if not upsert and path in self.stored_objects:
            raise UploadError(f"Object already exists: {path}")
        self.stored_objects[path] = (bytes(data), content_type)
        return path

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored[0]


@dataclass
class LocalDiskBlobStore:
    """
    Writes uploads below the static site's assets directory.

    Used by the HTTP API when no object storage is configured; public URLs
    are site-relative paths.
    """

    site_root: str
    web_prefix: str = "assets/uploads"

    @property
    def root(self) -> Path:
        return Path(self.site_root) / self.web_prefix

    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> str:
        path = _check_relative(path)
        target = self.root / path
        if not upsert and target.exists():
            raise UploadError(f"Object already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise UploadError(f"Could not write {target}: {exc}") from exc
        return path

    def get_public_url(self, path: str) -> str:
        return f"{self.web_prefix}/{path}"


@dataclass
class S3BlobStore:
    """
    S3-compatible storage client (Supabase Storage, COS, MinIO, AWS).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def _exists(self, path: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=path)
        except ClientError:
            return False
        return True

    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = True,
    ) -> str:
        path = _check_relative(path)
        try:
            if not upsert and self._exists(path):
                raise UploadError(f"Object already exists: {path}")
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise UploadError(f"Upload of {path} failed: {exc}") from exc
        return path

    def get_public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        if not self.endpoint:
            raise UploadError("Set STORAGE_PUBLIC_BASE_URL or STORAGE_ENDPOINT for public URLs")
        return f"{self.endpoint.rstrip('/')}/{self.bucket}/{path}"

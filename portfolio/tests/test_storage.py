import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from portfolio.errors import UploadError
from portfolio.storage import (
    InMemoryBlobStore,
    LocalDiskBlobStore,
    S3BlobStore,
    build_storage_path,
    sanitize_filename,
    upload_and_link,
)


class PathTests(unittest.TestCase):
    def test_sanitize_filename(self):
        self.assertEqual(sanitize_filename("My Plan (v2).pdf"), "My_Plan__v2_.pdf")
        self.assertEqual(sanitize_filename("../../etc/passwd"), "passwd")
        self.assertEqual(sanitize_filename(""), "file")

    def test_build_storage_path(self):
        self.assertEqual(
            build_storage_path("/projects/images/", "a b.png", now_ms=1700000000000),
            "projects/images/1700000000000_a_b.png",
        )


class InMemoryBlobStoreTests(unittest.TestCase):
    def test_upload_and_link(self):
        store = InMemoryBlobStore()
        url = upload_and_link(store, "content/1_a.png", b"data", "image/png")
        self.assertEqual(url, "https://example.test/storage/content/1_a.png")
        self.assertEqual(store.get_bytes("content/1_a.png"), b"data")

    def test_rejects_traversal(self):
        with self.assertRaises(UploadError):
            InMemoryBlobStore().upload("content/../secret", b"x")

    def test_no_upsert(self):
        store = InMemoryBlobStore()
        store.upload("a/b", b"1")
        with self.assertRaises(UploadError):
            store.upload("a/b", b"2", upsert=False)


class LocalDiskBlobStoreTests(unittest.TestCase):
    def test_writes_below_assets(self):
        with tempfile.TemporaryDirectory() as tmp:
            store = LocalDiskBlobStore(site_root=tmp)
            url = upload_and_link(store, "brochures/1_a.pdf", b"%PDF", "application/pdf")
            self.assertEqual(url, "assets/uploads/brochures/1_a.pdf")
            self.assertEqual((Path(tmp) / url).read_bytes(), b"%PDF")


class S3BlobStoreTests(unittest.TestCase):
    def _store(self, client, **kwargs):
        with patch("portfolio.storage.boto3.client", return_value=client):
            return S3BlobStore(
                bucket="site",
                region="eu-central-1",
                endpoint="https://abc.storage.example/s3",
                access_key_id="id",
                secret_access_key="secret",
                **kwargs,
            )

    def test_put_object_and_public_url(self):
        client = MagicMock()
        store = self._store(client, public_base_url="https://cdn.example/site/")
        url = upload_and_link(store, "projects/images/1_a.png", b"x", "image/png")
        client.put_object.assert_called_once_with(
            Bucket="site", Key="projects/images/1_a.png", Body=b"x", ContentType="image/png"
        )
        self.assertEqual(url, "https://cdn.example/site/projects/images/1_a.png")

    def test_default_public_url_uses_endpoint(self):
        store = self._store(MagicMock())
        self.assertEqual(
            store.get_public_url("a/b.png"), "https://abc.storage.example/s3/site/a/b.png"
        )

    def test_public_url_needs_base_url_or_endpoint(self):
        with patch("portfolio.storage.boto3.client", return_value=MagicMock()):
            store = S3BlobStore(
                bucket="site",
                region="eu-central-1",
                endpoint="",
                access_key_id="id",
                secret_access_key="secret",
            )
        with self.assertRaises(UploadError):
            upload_and_link(store, "a/b.png", b"x", "image/png")

    def test_client_error_becomes_upload_error(self):
        client = MagicMock()
        client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        store = self._store(client)
        with self.assertRaises(UploadError):
            store.upload("a/b.png", b"x")

    def test_existing_object_without_upsert(self):
        client = MagicMock()
        store = self._store(client)
        with self.assertRaises(UploadError):
            store.upload("a/b.png", b"x", upsert=False)
        client.put_object.assert_not_called()


if __name__ == "__main__":
    unittest.main()

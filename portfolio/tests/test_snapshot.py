import json
import tempfile
import unittest
from pathlib import Path

from portfolio.errors import NotFoundError, StoreError
from portfolio.models import Project
from portfolio.snapshot import (
    JsonContentStore,
    JsonProjectStore,
    content_snapshot_path,
    projects_snapshot_path,
)


class SnapshotStoreTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_paths(self):
        self.assertEqual(content_snapshot_path(self.root), self.root / "assets/misc/content.json")
        self.assertEqual(projects_snapshot_path(self.root), self.root / "js/projects-data.json")

    def test_missing_files_read_as_empty(self):
        self.assertIsNone(JsonContentStore(content_snapshot_path(self.root)).get_content())
        self.assertEqual(JsonProjectStore(projects_snapshot_path(self.root)).list_projects(), [])

    def test_content_must_be_object(self):
        path = content_snapshot_path(self.root)
        path.parent.mkdir(parents=True)
        path.write_text("[1, 2]", encoding="utf-8")
        with self.assertRaises(StoreError):
            JsonContentStore(path).get_content()

    def test_legacy_rows_and_updates(self):
        path = projects_snapshot_path(self.root)
        path.parent.mkdir(parents=True)
        path.write_text(
            json.dumps([{"id": 1, "title": "Old", "image_path": "img/a.jpg", "extra": "kept"}]),
            encoding="utf-8",
        )
        store = JsonProjectStore(path)
        self.assertEqual(store.get_project(1).image, "img/a.jpg")

        store.save_project(Project(id=1, title="New", image="img/b.jpg"))
        rows = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(rows[0]["title"], "New")
        self.assertEqual(rows[0]["extra"], "kept")

        with self.assertRaises(NotFoundError):
            store.save_project(Project(id=2, title="ghost"))

    def test_insert_and_delete(self):
        store = JsonProjectStore(projects_snapshot_path(self.root))
        saved = store.save_project(Project(title="Fresh"))
        self.assertGreater(saved.id, 1_000_000_000_000)
        store.delete_project(saved.id)
        self.assertEqual(store.list_projects(), [])


if __name__ == "__main__":
    unittest.main()

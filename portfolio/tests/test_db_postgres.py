import unittest

from portfolio.db import PostgresContentStore, PostgresProjectStore
from portfolio.errors import NotFoundError
from portfolio.models import Project


class PostgresStoreTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres store logic.
    """

    def setUp(self):
        self.content = PostgresContentStore("sqlite+pysqlite:///:memory:")
        self.projects = PostgresProjectStore("sqlite+pysqlite:///:memory:")

    def tearDown(self):
        self.content.close()
        self.projects.close()

    def test_content_upsert_and_read(self):
        self.assertIsNone(self.content.get_content())
        self.content.save_content({"homepage.hero.title": "One"})
        self.content.save_content({"homepage.hero.title": "Two", "contact.features": ["a"]})
        self.assertEqual(
            self.content.get_content(),
            {"homepage.hero.title": "Two", "contact.features": ["a"]},
        )

    def test_insert_assigns_sequence_id(self):
        first = self.projects.save_project(Project(title="Dam", gallery=["g1"]))
        second = self.projects.save_project(Project(title="Rail"))
        self.assertIsNotNone(first.id)
        self.assertGreater(second.id, first.id)
        self.assertEqual(first.gallery, ["g1"])

    def test_list_is_id_descending(self):
        a = self.projects.save_project(Project(title="A"))
        b = self.projects.save_project(Project(title="B"))
        self.assertEqual([p.id for p in self.projects.list_projects()], [b.id, a.id])

    def test_update_keeps_id(self):
        saved = self.projects.save_project(Project(title="Old", category="Roads & Structures"))
        saved.title = "New"
        updated = self.projects.save_project(saved)
        self.assertEqual(updated.id, saved.id)
        self.assertEqual(self.projects.get_project(saved.id).title, "New")
        self.assertEqual(len(self.projects.list_projects()), 1)

    def test_update_missing_row(self):
        with self.assertRaises(NotFoundError):
            self.projects.save_project(Project(id=999, title="ghost"))

    def test_delete(self):
        saved = self.projects.save_project(Project(title="Gone"))
        self.projects.delete_project(saved.id)
        self.assertIsNone(self.projects.get_project(saved.id))


if __name__ == "__main__":
    unittest.main()

import unittest
from unittest.mock import MagicMock

from portfolio.config import EmptyRemotePolicy, Settings
from portfolio.db import InMemoryProjectStore
from portfolio.errors import ApiAuthError, StoreError, UploadError
from portfolio.local_cache import IMAGE_KEY_PREFIX
from portfolio.models import PendingFile, Project, ProjectForm
from portfolio.reconcile import Reconciler, describe
from portfolio.tests.helpers import local_state, remote_state

MB = 1024 * 1024


class ProjectLoadTests(unittest.TestCase):
    def test_remote_projects_replace_cache(self):
        store = InMemoryProjectStore([Project(id=1, title="A"), Project(id=2, title="B")])
        state = remote_state(project_store=store)
        state.local_cache.replace_projects([Project(id=99, title="stale")])

        projects = Reconciler(state).load_projects()
        self.assertEqual([p.id for p in projects], [2, 1])
        self.assertEqual([p.id for p in state.local_cache.list_projects()], [2, 1])

    def test_empty_remote_is_authoritative_by_default(self):
        state = remote_state()
        state.local_cache.replace_projects([Project(id=99, title="stale")])
        self.assertEqual(Reconciler(state).load_projects(), [])
        self.assertEqual(state.local_cache.list_projects(), [])

    def test_empty_remote_can_keep_local(self):
        state = remote_state(settings=Settings(empty_remote_projects=EmptyRemotePolicy.KEEP_LOCAL))
        state.local_cache.replace_projects([Project(id=99, title="cached")])
        projects = Reconciler(state).load_projects()
        self.assertEqual([p.title for p in projects], ["cached"])

    def test_remote_failure_uses_cache(self):
        failing = MagicMock()
        failing.list_projects.side_effect = StoreError("down")
        state = remote_state(project_store=failing)
        state.local_cache.replace_projects([Project(id=3, title="cached")])
        self.assertEqual([p.id for p in Reconciler(state).load_projects()], [3])

    def test_rejected_password_on_read_falls_through(self):
        api = MagicMock()
        api.list_projects.side_effect = ApiAuthError("Unauthorized", status_code=401)
        api.get_project.side_effect = ApiAuthError("Unauthorized", status_code=401)
        state = local_state(api=api)
        state.local_cache.replace_projects([Project(id=3, title="cached")])
        reconciler = Reconciler(state)

        self.assertEqual([p.id for p in reconciler.load_projects()], [3])
        self.assertEqual(reconciler.get_project(3).title, "cached")

    def test_snapshot_seeds_empty_cache(self):
        snapshot = InMemoryProjectStore([Project(id=5, title="Bundled")])
        state = local_state(projects_snapshot=snapshot)
        projects = Reconciler(state).load_projects()
        self.assertEqual([p.title for p in projects], ["Bundled"])
        self.assertEqual([p.id for p in state.local_cache.list_projects()], [5])

    def test_get_project_falls_through_sources(self):
        snapshot = InMemoryProjectStore([Project(id=5, title="Bundled")])
        state = local_state(projects_snapshot=snapshot)
        reconciler = Reconciler(state)
        self.assertEqual(reconciler.get_project(5).title, "Bundled")
        self.assertIsNone(reconciler.get_project(6))


class ProjectSaveTests(unittest.TestCase):
    def test_insert_formats_description_and_mirrors(self):
        state = remote_state()
        outcome = Reconciler(state).save_project(
            ProjectForm(
                title="  Water Main ",
                category="Water Supply & Hydraulics",
                description="Scope:\n- Pipes\n- Pumps",
            )
        )
        self.assertTrue(outcome.ok)
        project = outcome.value
        self.assertEqual(project.id, 1)
        self.assertEqual(project.title, "Water Main")
        self.assertEqual(project.description, "<p>Scope:</p><ul><li>Pipes</li><li>Pumps</li></ul>")
        self.assertEqual(project.plain_description, "Scope:\n- Pipes\n- Pumps")
        self.assertEqual([p.id for p in state.local_cache.list_projects()], [1])
        self.assertEqual([p.id for p in state.projects], [1])

    def test_update_keeps_id(self):
        state = remote_state()
        reconciler = Reconciler(state)
        first = reconciler.save_project(ProjectForm(title="Old")).value

        outcome = reconciler.save_project(ProjectForm(id=first.id, title="New"))
        self.assertEqual(outcome.value.id, first.id)
        self.assertEqual(len(state.project_store.list_projects()), 1)
        self.assertEqual([p.title for p in state.projects], ["New"])

    def test_update_of_missing_row_fails_in_remote_mode(self):
        state = remote_state()
        outcome = Reconciler(state).save_project(ProjectForm(id=42, title="ghost"))
        self.assertFalse(outcome.ok)
        self.assertEqual(state.local_cache.list_projects(), [])

    def test_local_only_insert_uses_timestamp_id(self):
        state = local_state()
        outcome = Reconciler(state).save_project(ProjectForm(title="Offline"))
        self.assertEqual(outcome.source, "local")
        self.assertGreater(outcome.value.id, 1_000_000_000_000)
        self.assertEqual(state.local_cache.get_project(outcome.value.id).title, "Offline")

    def test_rich_text_description(self):
        html, plain = describe(ProjectForm(description=" <p>Hello<br>world</p> ", rich_text=True))
        self.assertEqual(html, "<p>Hello<br>world</p>")
        self.assertEqual(plain, "Hello\nworld")

    def test_cover_and_gallery_uploads(self):
        state = remote_state()
        outcome = Reconciler(state).save_project(
            ProjectForm(
                title="Bridge",
                cover_file=PendingFile("cover.jpg", b"jpg"),
                existing_gallery=["keep.jpg", "drop.jpg"],
                removed_gallery=["drop.jpg"],
                gallery_files=[PendingFile("g1.jpg", b"1"), PendingFile("g2.jpg", b"2")],
            )
        )
        project = outcome.value
        self.assertTrue(project.image.startswith("https://example.test/storage/projects/images/"))
        self.assertEqual(project.gallery[0], "keep.jpg")
        self.assertEqual(len(project.gallery), 3)
        self.assertTrue(
            all(url.startswith("https://example.test/storage/projects/gallery/") for url in project.gallery[1:])
        )
        self.assertEqual(outcome.warnings, [])

    def test_gallery_limits_are_checked_before_upload(self):
        state = remote_state()
        existing = [f"img{i}.jpg" for i in range(10)]
        outcome = Reconciler(state).save_project(
            ProjectForm(
                title="Full",
                existing_gallery=existing,
                gallery_files=[PendingFile(f"n{i}.jpg", b"x") for i in range(12)],
            )
        )
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.value.gallery, existing)
        self.assertEqual(state.blob_store.stored_objects, {})
        self.assertTrue(any("only add 0 more" in w for w in outcome.warnings))

    def test_oversized_gallery_file_is_not_uploaded(self):
        blob_store = MagicMock()
        state = remote_state(blob_store=blob_store)
        outcome = Reconciler(state).save_project(
            ProjectForm(title="Big", gallery_files=[PendingFile("huge.jpg", b"x" * (6 * MB))])
        )
        blob_store.upload.assert_not_called()
        self.assertEqual(outcome.value.gallery, [])
        self.assertEqual(outcome.warnings, ["huge.jpg is larger than 5MB and was skipped."])

    def test_cover_upload_failure_warns_and_caches_image(self):
        blob_store = MagicMock()
        blob_store.upload.side_effect = UploadError("bucket offline")
        state = remote_state(blob_store=blob_store)

        outcome = Reconciler(state).save_project(
            ProjectForm(title="Tower", image="old.jpg", cover_file=PendingFile("new.png", b"png"))
        )
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.value.image, "old.jpg")
        self.assertEqual(len(outcome.warnings), 1)
        cached = [key for key in state.local_cache.backend.items if key.startswith(IMAGE_KEY_PREFIX)]
        self.assertEqual(len(cached), 1)
        self.assertTrue(cached[0].endswith("-new.png"))

    def test_api_receives_inline_attachments(self):
        api = MagicMock()
        api.save_project.return_value = Project(id=7, title="Via API", image="assets/uploads/x.png")
        state = local_state(api=api)

        outcome = Reconciler(state).save_project(
            ProjectForm(
                title="Via API",
                cover_file=PendingFile("cover.png", b"png"),
                gallery_files=[PendingFile("g.jpg", b"jpg")],
            )
        )
        self.assertEqual(outcome.source, "api")
        self.assertEqual(outcome.warnings, [])
        project, attachments = api.save_project.call_args[0]
        self.assertIsNone(project.id)
        self.assertEqual(attachments["imageFilename"], "cover.png")
        self.assertTrue(attachments["imageBase64"].startswith("data:image/png;base64,"))
        self.assertEqual(attachments["galleryBase64"][0]["filename"], "g.jpg")
        self.assertEqual([p.id for p in state.local_cache.list_projects()], [7])

    def test_gallery_without_object_storage_warns_in_remote_mode(self):
        state = remote_state(blob_store=None)
        outcome = Reconciler(state).save_project(
            ProjectForm(title="No bucket", gallery_files=[PendingFile("g.jpg", b"x" * 10)])
        )
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.value.gallery, [])
        self.assertEqual(outcome.warnings, ["Failed to upload gallery image: g.jpg"])

    def test_rejected_password_stops_project_save(self):
        api = MagicMock()
        api.save_project.side_effect = ApiAuthError("Unauthorized", status_code=401)
        state = local_state(api=api)
        outcome = Reconciler(state).save_project(ProjectForm(title="Denied"))
        self.assertFalse(outcome.ok)
        self.assertEqual(state.local_cache.list_projects(), [])

    def test_local_fallback_keeps_inline_images(self):
        api = MagicMock()
        api.save_project.side_effect = StoreError("offline")
        state = local_state(api=api)

        outcome = Reconciler(state).save_project(
            ProjectForm(title="Offline", cover_file=PendingFile("cover.png", b"png"))
        )
        self.assertEqual(outcome.source, "local")
        self.assertTrue(outcome.value.image.startswith("data:image/png;base64,"))


class ProjectDeleteTests(unittest.TestCase):
    def test_delete_remote_project_clears_cache(self):
        state = remote_state(project_store=InMemoryProjectStore([Project(id=1, title="A")]))
        reconciler = Reconciler(state)
        reconciler.load_projects()

        outcome = reconciler.delete_project(1)
        self.assertTrue(outcome.ok)
        self.assertEqual(state.project_store.list_projects(), [])
        self.assertEqual(state.local_cache.list_projects(), [])
        self.assertEqual(state.projects, [])

    def test_delete_failure_reports_reason(self):
        failing = MagicMock()
        failing.delete_project.side_effect = StoreError("locked")
        state = remote_state(project_store=failing)
        outcome = Reconciler(state).delete_project(1)
        self.assertFalse(outcome.ok)
        self.assertIn("locked", outcome.reason)


if __name__ == "__main__":
    unittest.main()

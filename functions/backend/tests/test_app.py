import json
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from backend.app import create_app
from backend.db import Database, InMemoryDocumentStore
from backend.dependencies import get_page_queries, get_project_queries
from backend.events import EventBus
from backend.image_upload import ImageUploader
from backend.pages_service import PagesService
from backend.projects_service import ProjectsService
from backend.queries import PageQueries, ProjectQueries
from backend.query_cache import QueryClient
from backend.storage import InMemoryStorageClient


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.storage = InMemoryStorageClient()
        bus = EventBus()
        db = Database(self.store, events=bus)
        cache = QueryClient()
        cache.bind(bus)
        projects_service = ProjectsService(db, uploader=ImageUploader(self.storage))
        self.addCleanup(projects_service.close)
        self.page_queries = PageQueries(PagesService(db), cache)
        self.project_queries = ProjectQueries(projects_service, cache)

        app = create_app()
        app.dependency_overrides[get_page_queries] = lambda: self.page_queries
        app.dependency_overrides[get_project_queries] = lambda: self.project_queries
        self.client = TestClient(app)

    def test_page_crud(self):
        response = self.client.put(
            "/api/pages/home", json={"title": "Home", "seo": {"title": "Roofing"}}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"id": "home"})

        page = self.client.get("/api/pages/home").json()
        self.assertEqual(page["title"], "Home")
        self.assertEqual(page["seo"]["title"], "Roofing")
        self.assertEqual(page["seo"]["social"]["twitterCard"], "summary")
        self.assertFalse(page["seo"]["robots"]["noindex"])

        pages = self.client.get("/api/pages").json()["pages"]
        self.assertEqual([p["id"] for p in pages], ["home"])

        self.assertEqual(self.client.delete("/api/pages/home").json(), {"status": "ok"})
        self.assertEqual(self.client.get("/api/pages/home").status_code, 404)
        self.assertEqual(self.client.get("/api/pages").json()["pages"], [])

    def test_missing_page_is_404(self):
        response = self.client.get("/api/pages/missing")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "Page not found")

    def test_new_page_id_is_not_fetched(self):
        with patch.object(self.store, "get", wraps=self.store.get) as get:
            self.assertEqual(self.client.get("/api/pages/new").status_code, 404)
        get.assert_not_called()
        self.assertEqual(self.client.put("/api/pages/new", json={}).status_code, 400)

    def test_malformed_page_body_is_422(self):
        response = self.client.put("/api/pages/home", json={"seo": "bad"})
        self.assertEqual(response.status_code, 422)

    def test_store_failure_is_502(self):
        with patch.object(self.store, "list_documents", side_effect=RuntimeError("offline")):
            response = self.client.get("/api/pages")
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["detail"], "offline")

    def test_create_project_with_uploads(self):
        project = {
            "id": "new",
            "title": "Farmhouse",
            "category": "Residential",
            "completionDate": "2024-03-01",
            "gallery": [
                {"url": "https://cdn.test/old.jpg", "caption": "Before"},
                {"caption": "After", "fileIndex": 0},
                {"caption": "Nothing here"},
            ],
        }
        response = self.client.post(
            "/api/projects",
            data={"project": json.dumps(project)},
            files=[
                ("new_image", ("main.png", b"main", "image/png")),
                ("gallery_files", ("after.png", b"after", "image/png")),
            ],
        )

        self.assertEqual(response.status_code, 200)
        saved = response.json()
        self.assertTrue(saved["id"].isdigit())
        self.assertTrue(saved["image"].endswith("main.png"))
        self.assertEqual(saved["imageUrl"], saved["image"])
        self.assertEqual(
            [item["caption"] for item in saved["gallery"]], ["Before", "After"]
        )
        self.assertTrue(saved["gallery"][1]["url"].endswith("after.png"))
        self.assertEqual(len(self.storage.stored_objects), 2)

        fetched = self.client.get(f"/api/projects/{saved['id']}").json()
        self.assertEqual(fetched["gallery"], saved["gallery"])

    def test_project_with_bad_file_index_is_rejected(self):
        project = {"id": "p1", "gallery": [{"fileIndex": 3}]}
        response = self.client.post(
            "/api/projects", data={"project": json.dumps(project)}
        )
        self.assertEqual(response.status_code, 400)
        self.assertIsNone(self.store.get("projects", "p1"))

    def test_boolean_file_index_is_rejected(self):
        project = {"id": "p1", "gallery": [{"caption": "After", "fileIndex": True}]}
        response = self.client.post(
            "/api/projects",
            data={"project": json.dumps(project)},
            files=[
                ("gallery_files", ("a.png", b"a", "image/png")),
                ("gallery_files", ("b.png", b"b", "image/png")),
            ],
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.storage.stored_objects, {})
        self.assertIsNone(self.store.get("projects", "p1"))

    def test_gallery_entry_keys_are_stored(self):
        project = {
            "id": "p1",
            "gallery": [
                {"url": "https://cdn.test/a.jpg", "alt": "Porch"},
                {"caption": "New", "fileIndex": 0, "alt": "Deck"},
            ],
        }
        response = self.client.post(
            "/api/projects",
            data={"project": json.dumps(project)},
            files=[("gallery_files", ("deck.png", b"deck", "image/png"))],
        )

        self.assertEqual(response.status_code, 200)
        gallery = self.store.get("projects", "p1")["gallery"]
        self.assertEqual([item["alt"] for item in gallery], ["Porch", "Deck"])
        self.assertNotIn("fileIndex", gallery[1])

    def test_project_with_invalid_json_is_rejected(self):
        response = self.client.post("/api/projects", data={"project": "{nope"})
        self.assertEqual(response.status_code, 400)

    def test_empty_upload_is_400(self):
        response = self.client.post(
            "/api/projects",
            data={"project": json.dumps({"id": "p1"})},
            files=[("new_image", ("main.png", b"", "image/png"))],
        )
        self.assertEqual(response.status_code, 400)
        self.assertIsNone(self.store.get("projects", "p1"))

    def test_list_projects_by_category(self):
        for doc_id, category, date in [
            ("a", "Commercial", "2021-05-01"),
            ("b", "Commercial", "2023-05-01"),
            ("c", "Residential", "2022-05-01"),
        ]:
            self.store.upsert(
                "projects",
                doc_id,
                {"category": category, "completionDate": date},
                on_create={},
            )

        commercial = self.client.get(
            "/api/projects", params={"category": "Commercial"}
        ).json()["projects"]
        self.assertEqual([p["id"] for p in commercial], ["b", "a"])

        everything = self.client.get("/api/projects").json()["projects"]
        self.assertEqual(len(everything), 3)

        limited = self.client.get("/api/projects", params={"limit": 1}).json()["projects"]
        self.assertEqual(len(limited), 1)

    def test_delete_project(self):
        self.store.upsert("projects", "p1", {"title": "Barn"}, on_create={})
        self.assertEqual(self.client.get("/api/projects/p1").status_code, 200)

        self.assertEqual(self.client.delete("/api/projects/p1").status_code, 200)

        response = self.client.get("/api/projects/p1")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "Project not found")


if __name__ == "__main__":
    unittest.main()

import unittest
from unittest.mock import patch

from backend.content_service import ServiceError
from backend.db import Database, DbResult, ErrorKind, InMemoryDocumentStore
from backend.pages_service import PagesService
from shared.site_content import Page, PageSeo


class PagesServiceTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.db = Database(self.store)
        self.service = PagesService(self.db)

    def test_get_all_fills_defaults(self):
        self.store.upsert("pages", "home", {"title": "Home"}, on_create={})
        self.store.upsert("pages", "about", {"seo": {"robots": {"noindex": True}}}, on_create={})

        pages = {page.id: page for page in self.service.get_all()}

        self.assertEqual(set(pages), {"home", "about"})
        self.assertEqual(pages["home"].title, "Home")
        self.assertEqual(pages["home"].seo.social.twitter_card, "summary")
        self.assertEqual(pages["about"].title, "Untitled Page")
        self.assertTrue(pages["about"].seo.robots.noindex)

    def test_get_all_drops_malformed_records(self):
        self.store.upsert("pages", "good", {"title": "Good"}, on_create={})
        self.store.upsert("pages", "bad", {"seo": "not an object"}, on_create={})

        with self.assertLogs("backend.content_service", level="ERROR"):
            pages = self.service.get_all()

        self.assertEqual([page.id for page in pages], ["good"])

    def test_get_all_defaults_empty_seo(self):
        self.store.upsert("pages", "home", {"title": "Home", "seo": ""}, on_create={})

        (page,) = self.service.get_all()

        self.assertEqual(page.id, "home")
        self.assertEqual(page.seo.social.twitter_card, "summary")

    def test_get_all_raises_on_transport_failure(self):
        failure = DbResult(success=False, error="unavailable", error_kind=ErrorKind.TRANSPORT)
        with patch.object(self.db, "get_all", return_value=failure):
            with self.assertRaisesRegex(ServiceError, "unavailable"):
                self.service.get_all()

    def test_get_by_id_missing_returns_none_after_one_read(self):
        with patch.object(self.store, "get", wraps=self.store.get) as get:
            self.assertIsNone(self.service.get_by_id("missing"))
        self.assertEqual(get.call_count, 1)

    def test_get_by_id_raises_on_transport_failure(self):
        with patch.object(self.store, "get", side_effect=RuntimeError("socket closed")):
            with self.assertRaisesRegex(ServiceError, "socket closed"):
                self.service.get_by_id("home")

    def test_get_by_id_populates_every_seo_field(self):
        self.store.upsert(
            "pages", "home", {"seo": {"social": {"ogTitle": "Hi"}}}, on_create={}
        )

        page = self.service.get_by_id("home")

        self.assertEqual(page.seo.social.og_title, "Hi")
        self.assertEqual(page.seo.keywords, [])
        self.assertFalse(page.seo.robots.notranslate)

    def test_save_creates_then_updates(self):
        page = Page(id="home", title="Home", seo=PageSeo(keywords=["roofing"]))

        self.assertEqual(self.service.save(page), "home")
        created = self.store.get("pages", "home")
        self.assertEqual(created["title"], "Home")
        self.assertEqual(created["seo"]["keywords"], ["roofing"])
        self.assertIn("createdAt", created)

        page.title = "Welcome"
        self.service.save(page)
        updated = self.store.get("pages", "home")
        self.assertEqual(updated["title"], "Welcome")
        self.assertEqual(updated["createdAt"], created["createdAt"])

    def test_read_then_save_keeps_unknown_seo_keys(self):
        self.store.upsert(
            "pages",
            "home",
            {"seo": {"title": "Home", "ogLocale": "en_US", "robots": {"maxSnippet": 50}}},
            on_create={},
        )

        self.service.save(self.service.get_by_id("home"))

        seo = self.store.get("pages", "home")["seo"]
        self.assertEqual(seo["ogLocale"], "en_US")
        self.assertEqual(seo["robots"]["maxSnippet"], 50)
        self.assertFalse(seo["robots"]["noindex"])
        self.assertEqual(seo["title"], "Home")

    def test_save_does_not_read_first(self):
        with patch.object(self.store, "get", wraps=self.store.get) as get:
            self.service.save({"id": "home", "title": "Home"})
        get.assert_not_called()

    def test_save_ignores_caller_timestamps(self):
        self.service.save({"id": "home", "createdAt": "yesterday"})
        self.assertNotEqual(self.store.get("pages", "home")["createdAt"], "yesterday")

    def test_save_requires_id(self):
        with self.assertRaises(ValueError):
            self.service.save(Page(id=""))

    def test_save_raises_on_failure(self):
        with patch.object(self.store, "upsert", side_effect=RuntimeError("denied")):
            with self.assertRaisesRegex(ServiceError, "denied"):
                self.service.save(Page(id="home"))

    def test_delete_then_get_all(self):
        self.service.save(Page(id="home"))
        self.service.save(Page(id="about"))

        self.service.delete("home")

        self.assertEqual([page.id for page in self.service.get_all()], ["about"])

    def test_delete_raises_on_failure(self):
        with patch.object(self.store, "delete", side_effect=RuntimeError("denied")):
            with self.assertRaises(ServiceError):
                self.service.delete("home")


if __name__ == "__main__":
    unittest.main()

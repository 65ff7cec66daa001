"""
Pages: typed access to the "pages" collection.
"""

from __future__ import annotations

from typing import Any, Mapping

from backend.content_service import ContentService
from shared.firebase_constants import PAGES_COLLECTION
from shared.normalize import normalize_page
from shared.site_content import Page, page_to_record, strip_timestamps


class PagesService(ContentService[Page]):
    collection = PAGES_COLLECTION
    label = "Pages Service"

    def normalize(self, raw: Mapping[str, Any] | Page) -> Page:
        return normalize_page(raw)

    def save(self, page: Page | Mapping[str, Any]) -> str:
        """
        Creates or updates a page and returns its id.

        This is a single merge-upsert: the store decides whether the page is
        new, so there is no read before the write.
        """
        page = normalize_page(page)
        if not page.id:
            raise ValueError("Page id is required")

        self._log("save", id=page.id)
        result = self.db.set(
            self.collection, page.id, strip_timestamps(page_to_record(page))
        )
        if not result.success:
            self._fail("save", result, f"Failed to save page with ID: {page.id}")
        self._log("save", success=True, id=page.id)
        return page.id

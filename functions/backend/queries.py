"""
Cached reads and invalidating writes for pages and projects.

Cache keys:
    ("pages",)            every page
    ("page", page_id)     one page
    ("projects",)         every project
    ("project", id)       one project
"""

from __future__ import annotations

from typing import Any, Generic, List, Optional, TypeVar

from backend.content_service import ContentService
from backend.pages_service import PagesService
from backend.projects_service import ProjectsService
from backend.query_cache import QueryClient
from shared.site_content import Page, Project, ProjectDraft

# Id the editor uses for a record that has not been saved yet.
NEW_RECORD_ID = "new"

T = TypeVar("T")


def is_fetchable_id(record_id: Optional[str]) -> bool:
    return bool(record_id) and record_id != NEW_RECORD_ID


class EntityQueries(Generic[T]):
    list_key: str = ""
    item_key: str = ""

    def __init__(self, service: ContentService[T], client: QueryClient):
        self.service = service
        self.client = client

    def all(self) -> List[T]:
        return self.client.fetch((self.list_key,), self.service.get_all)

    def one(self, record_id: Optional[str]) -> Optional[T]:
        """Fetches one record; no request is made for an empty or "new" id."""
        return self.client.fetch(
            (self.item_key, record_id),
            lambda: self.service.get_by_id(record_id),
            enabled=is_fetchable_id(record_id),
        )

    def invalidate_saved(self, record_id: str) -> None:
        self.client.invalidate((self.list_key,))
        self.client.invalidate((self.item_key, record_id))

    def delete(self, record_id: str) -> None:
        self.service.delete(record_id)
        self.client.invalidate((self.list_key,))
        self.client.invalidate((self.item_key, record_id))


class PageQueries(EntityQueries[Page]):
    list_key = "pages"
    item_key = "page"
    service: PagesService

    def save(self, page: Page | dict[str, Any]) -> str:
        saved_id = self.service.save(page)
        self.invalidate_saved(saved_id)
        return saved_id


class ProjectQueries(EntityQueries[Project]):
    list_key = "projects"
    item_key = "project"
    service: ProjectsService

    def by_category(self, category: str, limit: Optional[int] = None) -> List[Project]:
        return self.client.fetch(
            (self.list_key, "category", category, limit),
            lambda: self.service.get_by_category(category, limit=limit),
        )

    def save(self, project: Project | ProjectDraft) -> Project:
        if isinstance(project, ProjectDraft):
            saved = self.service.save_draft(project)
        else:
            saved = self.service.save(project)
        self.invalidate_saved(saved.id)
        return saved

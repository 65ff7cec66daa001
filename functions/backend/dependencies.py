"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import firebase_admin
from firebase_admin import firestore

from backend.config import get_settings
from backend.db import Database, DocumentStore, InMemoryDocumentStore, SqlDocumentStore
from backend.events import EventBus
from backend.firestore_store import FirestoreDocumentStore
from backend.image_upload import ImageUploader
from backend.pages_service import PagesService
from backend.projects_service import ProjectsService
from backend.queries import PageQueries, ProjectQueries
from backend.query_cache import QueryClient
from backend.storage import CosStorageClient, InMemoryStorageClient, StorageClient

_event_bus: EventBus | None = None
_document_store: DocumentStore | None = None
_database: Database | None = None
_storage_client: StorageClient | None = None
_image_uploader: ImageUploader | None = None
_query_client: QueryClient | None = None
_pages_service: PagesService | None = None
_projects_service: ProjectsService | None = None
_page_queries: PageQueries | None = None
_project_queries: ProjectQueries | None = None


def get_event_bus() -> EventBus:
    global _event_bus
    if _event_bus:
        return _event_bus
    _event_bus = EventBus()
    return _event_bus


def _firestore_client(project_id: str):
    try:
        app = firebase_admin.get_app()
    except ValueError:
        app = firebase_admin.initialize_app(options={"projectId": project_id})
    return firestore.client(app)


def get_document_store() -> DocumentStore:
    """
    Return a singleton store so documents persist across requests.
    """
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _document_store = InMemoryDocumentStore()
    elif settings.firestore_project_id:
        _document_store = FirestoreDocumentStore(
            _firestore_client(settings.firestore_project_id)
        )
    elif settings.database_url:
        _document_store = SqlDocumentStore(settings.database_url)
    else:
        _document_store = InMemoryDocumentStore()
    return _document_store


def get_database() -> Database:
    global _database
    if _database:
        return _database
    _database = Database(get_document_store(), events=get_event_bus())
    return _database


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.cos_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.cos_public_base_url or "",
        )
    return _storage_client


def get_image_uploader() -> ImageUploader:
    global _image_uploader
    if _image_uploader:
        return _image_uploader
    _image_uploader = ImageUploader(
        get_storage_client(), prefix=get_settings().image_upload_prefix
    )
    return _image_uploader


def get_query_client() -> QueryClient:
    """
    Return the shared read cache, invalidated by every store change event.
    """
    global _query_client
    if _query_client:
        return _query_client
    settings = get_settings()
    _query_client = QueryClient(
        retry=settings.query_retry, stale_seconds=settings.query_stale_seconds
    )
    _query_client.bind(get_event_bus())
    return _query_client


def get_pages_service() -> PagesService:
    global _pages_service
    if _pages_service:
        return _pages_service
    _pages_service = PagesService(get_database())
    return _pages_service


def get_projects_service() -> ProjectsService:
    global _projects_service
    if _projects_service:
        return _projects_service
    _projects_service = ProjectsService(
        get_database(),
        uploader=get_image_uploader(),
        max_upload_workers=get_settings().upload_max_workers,
    )
    return _projects_service


def get_page_queries() -> PageQueries:
    global _page_queries
    if _page_queries:
        return _page_queries
    _page_queries = PageQueries(get_pages_service(), get_query_client())
    return _page_queries


def get_project_queries() -> ProjectQueries:
    global _project_queries
    if _project_queries:
        return _project_queries
    _project_queries = ProjectQueries(get_projects_service(), get_query_client())
    return _project_queries


def reset_dependencies() -> None:
    """Drop every singleton so the next call rebuilds from settings (tests)."""
    global _event_bus, _document_store, _database, _storage_client
    global _image_uploader, _query_client, _pages_service, _projects_service
    global _page_queries, _project_queries
    if _projects_service:
        _projects_service.close()
    _event_bus = None
    _document_store = None
    _database = None
    _storage_client = None
    _image_uploader = None
    _query_client = None
    _pages_service = None
    _projects_service = None
    _page_queries = None
    _project_queries = None

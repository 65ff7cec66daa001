"""
HTTP routes for pages and projects.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from backend.dependencies import get_page_queries, get_project_queries
from backend.queries import NEW_RECORD_ID, PageQueries, ProjectQueries, is_fetchable_id
from backend.schemas import (
    DeleteResponse,
    PageListResponse,
    ProjectListResponse,
    SavePageResponse,
)
from shared.normalize import normalize_project
from shared.site_content import (
    GalleryDraft,
    PendingUpload,
    ProjectDraft,
    page_to_record,
    project_to_record,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Gallery entry keys the form handles itself; any others are stored as sent.
_GALLERY_FORM_KEYS = ("url", "caption", "fileIndex")


@router.get("/pages", response_model=PageListResponse)
def list_pages(queries: PageQueries = Depends(get_page_queries)):
    return PageListResponse(pages=[page_to_record(page) for page in queries.all()])


@router.get("/pages/{page_id}")
def get_page(page_id: str, queries: PageQueries = Depends(get_page_queries)):
    page = queries.one(page_id) if is_fetchable_id(page_id) else None
    if page is None:
        raise HTTPException(status_code=404, detail="Page not found")
    return page_to_record(page)


@router.put("/pages/{page_id}", response_model=SavePageResponse)
def save_page(
    page_id: str,
    payload: dict = Body(...),
    queries: PageQueries = Depends(get_page_queries),
):
    if not is_fetchable_id(page_id):
        raise HTTPException(status_code=400, detail=f"Invalid page id: {page_id!r}")
    saved_id = queries.save({**payload, "id": page_id})
    return SavePageResponse(id=saved_id)


@router.delete("/pages/{page_id}", response_model=DeleteResponse)
def delete_page(page_id: str, queries: PageQueries = Depends(get_page_queries)):
    queries.delete(page_id)
    return DeleteResponse(status="ok")


@router.get("/projects", response_model=ProjectListResponse)
def list_projects(
    category: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=500),
    queries: ProjectQueries = Depends(get_project_queries),
):
    if category:
        projects = queries.by_category(category, limit=limit)
    else:
        projects = queries.all()
        if limit:
            projects = projects[:limit]
    return ProjectListResponse(
        projects=[project_to_record(project) for project in projects]
    )


@router.get("/projects/{project_id}")
def get_project(
    project_id: str, queries: ProjectQueries = Depends(get_project_queries)
):
    project = queries.one(project_id) if is_fetchable_id(project_id) else None
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project_to_record(project)


async def _read_upload(file: UploadFile) -> PendingUpload:
    return PendingUpload(
        filename=file.filename or "image",
        content=await file.read(),
        content_type=file.content_type or "application/octet-stream",
    )


async def _build_draft(
    payload: dict[str, Any],
    new_image: Optional[UploadFile],
    gallery_files: List[UploadFile],
) -> ProjectDraft:
    if payload.get("id") == NEW_RECORD_ID:
        payload = {**payload, "id": ""}
    project = normalize_project(payload)

    gallery: Optional[List[GalleryDraft]] = None
    raw_gallery = payload.get("gallery")
    if isinstance(raw_gallery, list):
        gallery = []
        for entry in raw_gallery:
            file_index = entry.get("fileIndex")
            file = None
            if file_index is not None:
                if (
                    isinstance(file_index, bool)
                    or not isinstance(file_index, int)
                    or not 0 <= file_index < len(gallery_files)
                ):
                    raise HTTPException(
                        status_code=400, detail=f"Invalid gallery fileIndex: {file_index!r}"
                    )
                file = await _read_upload(gallery_files[file_index])
            gallery.append(
                GalleryDraft(
                    url=entry.get("url") or "",
                    caption=entry.get("caption") or "",
                    file=file,
                    extras={
                        k: v for k, v in entry.items() if k not in _GALLERY_FORM_KEYS
                    },
                )
            )

    pending_image = None
    if new_image is not None and new_image.filename:
        pending_image = await _read_upload(new_image)
    return ProjectDraft(project=project, new_image=pending_image, gallery=gallery)


@router.post("/projects")
async def save_project(
    project: str = Form(...),
    new_image: UploadFile | None = File(None),
    gallery_files: List[UploadFile] = File(default=[]),
    queries: ProjectQueries = Depends(get_project_queries),
):
    """
    Create or update a project.

    `project` is the JSON document. Gallery entries that carry a `fileIndex`
    refer to an uploaded file in `gallery_files`.
    """
    try:
        payload = json.loads(project)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid project JSON: {e}")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Project must be a JSON object")

    draft = await _build_draft(payload, new_image, gallery_files)
    saved = await run_in_threadpool(queries.save, draft)
    logger.info("Saved project %s", saved.id)
    return project_to_record(saved)


@router.delete("/projects/{project_id}", response_model=DeleteResponse)
def delete_project(
    project_id: str, queries: ProjectQueries = Depends(get_project_queries)
):
    queries.delete(project_id)
    return DeleteResponse(status="ok")

"""
Projects: typed access to the "projects" collection, including image uploads.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from backend.content_service import ContentService, RecordNotFoundError
from backend.db import Database
from backend.image_upload import ImageUploader, ImageUploadError
from shared.firebase_constants import PROJECTS_COLLECTION
from shared.normalize import normalize_project
from shared.site_content import (
    GalleryDraft,
    GalleryItem,
    PendingUpload,
    Project,
    ProjectDraft,
    project_to_record,
    strip_timestamps,
)

logger = logging.getLogger(__name__)

MAIN_IMAGE = "image"


def _warn_orphaned_upload(future: Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    logger.warning(
        "[Projects Service] Image %s was uploaded for a save that failed; "
        "no record references it",
        future.result(),
    )


class ProjectsService(ContentService[Project]):
    collection = PROJECTS_COLLECTION
    label = "Projects Service"

    def __init__(
        self,
        db: Database,
        uploader: Optional[ImageUploader] = None,
        max_upload_workers: int = 4,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(db)
        self.uploader = uploader
        self._clock = clock
        self._upload_pool = ThreadPoolExecutor(
            max_workers=max_upload_workers, thread_name_prefix="image-upload"
        )

    def normalize(self, raw: Mapping[str, Any] | Project) -> Project:
        return normalize_project(raw)

    def get_by_category(self, category: str, limit: Optional[int] = None) -> List[Project]:
        """Projects in `category`, most recently completed first."""
        self._log("getByCategory", category=category, limit=limit)
        result = self.db.query(
            self.collection,
            [("category", "==", category)],
            order_by="completionDate",
            direction="desc",
            limit=limit,
        )
        if not result.success:
            self._fail("getByCategory", result, f"Failed to query {category} projects")
        projects = self.normalize_each(result.data, "getByCategory")
        self._log("getByCategory", success=True, count=len(projects))
        return projects

    def save(self, project: Project | Mapping[str, Any]) -> Project:
        """
        Merge-upserts a project and returns it as stored.

        A project without an id gets one from the current time in
        milliseconds. Gallery entries without a url are dropped. The record is
        read back after the write so store-side timestamps are included.
        """
        project = normalize_project(project)
        doc_id = project.id or str(int(self._clock() * 1000))
        project = dataclasses.replace(
            project,
            id=doc_id,
            gallery=[item for item in project.gallery if item.url],
        )

        self._log("save", id=doc_id)
        result = self.db.set(
            self.collection, doc_id, strip_timestamps(project_to_record(project))
        )
        if not result.success:
            self._fail("save", result, "Failed to save project")

        saved = self.db.get(self.collection, doc_id)
        if not saved.success:
            if saved.not_found:
                logger.error("[%s Error] save: %s vanished after write", self.label, doc_id)
                raise RecordNotFoundError("Project saved but failed to retrieve")
            self._fail("save", saved, "Project saved but failed to retrieve")
        self._log("save", success=True, id=doc_id)
        return self.normalize(saved.data)

    def save_draft(self, draft: ProjectDraft) -> Project:
        """
        Uploads the draft's pending images, then saves the project.

        All uploads run concurrently. If any upload fails the save is aborted
        before anything is written, so the stored record is left unchanged.
        """
        project = normalize_project(draft.project)
        if draft.gallery is not None:
            gallery = list(draft.gallery)
        else:
            gallery = [
                GalleryDraft(url=item.url, caption=item.caption, extras=item.extras)
                for item in project.gallery
            ]

        pending: List[Tuple[Any, PendingUpload]] = []
        if draft.new_image is not None:
            pending.append((MAIN_IMAGE, draft.new_image))
        for index, entry in enumerate(gallery):
            if entry.file is not None:
                pending.append((index, entry.file))

        urls = self._upload_all(pending)

        if MAIN_IMAGE in urls:
            project = dataclasses.replace(
                project, image=urls[MAIN_IMAGE], image_url=urls[MAIN_IMAGE]
            )
        materialized = [
            GalleryItem(
                url=urls.get(index, entry.url) or "",
                caption=entry.caption or "",
                extras=entry.extras,
            )
            for index, entry in enumerate(gallery)
        ]
        project = dataclasses.replace(
            project, gallery=[item for item in materialized if item.url]
        )
        return self.save(project)

    def _upload_all(self, pending: List[Tuple[Any, PendingUpload]]) -> Dict[Any, str]:
        if not pending:
            return {}
        if self.uploader is None:
            raise ImageUploadError("No image uploader is configured")

        self._log("upload", count=len(pending))
        futures = {
            self._upload_pool.submit(self.uploader.upload, file): key
            for key, file in pending
        }
        urls: Dict[Any, str] = {}
        try:
            for future in as_completed(futures):
                urls[futures[future]] = future.result()
        except Exception:
            logger.exception("[%s Error] upload: aborting save", self.label)
            # In-flight uploads are not cancelled; report the ones that land.
            for future in futures:
                future.add_done_callback(_warn_orphaned_upload)
            raise
        return urls

    def close(self) -> None:
        self._upload_pool.shutdown(wait=False)

# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from shared.json_utils import convert_keys

# Stored keys the model does not name, kept so saves write them back.
EXTRAS = "extras"

# Fields written by the document store, never by callers.
TIMESTAMP_FIELDS = ("createdAt", "updatedAt")


@dataclass
class RobotsDirectives:
    noindex: bool = False
    nofollow: bool = False
    noarchive: bool = False
    nosnippet: bool = False
    noimageindex: bool = False
    notranslate: bool = False
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SocialMeta:
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""
    twitter_card: str = "summary"
    twitter_title: str = ""
    twitter_description: str = ""
    twitter_image: str = ""
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PageSeo:
    title: str = ""
    description: str = ""
    keywords: List[str] = field(default_factory=list)
    canonical_url: str = ""
    redirect_url: str = ""
    robots: RobotsDirectives = field(default_factory=RobotsDirectives)
    schema: str = ""
    social: SocialMeta = field(default_factory=SocialMeta)
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Page:
    """A content page edited from the admin backend."""

    id: str
    title: str = "Untitled Page"
    content: str = ""
    type: str = "page"
    seo: PageSeo = field(default_factory=PageSeo)
    created_at: Any = None  # Store timestamp (datetime or Firestore timestamp)
    updated_at: Any = None
    # Stored top-level fields this model does not name, kept verbatim.
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Specifications:
    duration: str = ""
    location: str = ""
    services: List[str] = field(default_factory=list)
    materials: List[str] = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProjectDetails:
    challenge: str = ""
    solution: str = ""
    outcome: str = ""
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GalleryItem:
    url: str = ""
    caption: str = ""
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Project:
    """A portfolio project shown on the public site."""

    id: str
    title: str = "Untitled Project"
    description: str = ""
    category: str = "Residential"
    image: str = ""
    image_url: str = ""
    completion_date: str = ""
    highlights: List[str] = field(default_factory=list)
    type: str = "Unknown"
    details: str = ""
    table_only: bool = False
    specifications: Specifications = field(default_factory=Specifications)
    project_details: ProjectDetails = field(default_factory=ProjectDetails)
    gallery: List[GalleryItem] = field(default_factory=list)
    created_at: Any = None
    updated_at: Any = None
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PendingUpload:
    """An image file that has not been uploaded to storage yet."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class GalleryDraft:
    url: str = ""
    caption: str = ""
    file: Optional[PendingUpload] = None
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProjectDraft:
    """
    A project as submitted from the editor, before its images are in storage.

    When `gallery` is set it replaces `project.gallery`.
    """

    project: Project
    new_image: Optional[PendingUpload] = None
    gallery: Optional[List[GalleryDraft]] = None


def _inline_extras(value: Any) -> Any:
    """Lifts each object's `extras` back into the object, at every depth."""
    if isinstance(value, dict):
        record = dict(value.get(EXTRAS) or {})
        record.update(
            (key, _inline_extras(item)) for key, item in value.items() if key != EXTRAS
        )
        return record
    if isinstance(value, list):
        return [_inline_extras(item) for item in value]
    return value


def _to_record(item: Any) -> dict:
    data = asdict(item)
    created_at = data.pop("created_at", None)
    updated_at = data.pop("updated_at", None)
    record = _inline_extras(convert_keys(data, "snake_to_camel", preserve=(EXTRAS,)))
    if created_at is not None:
        record["createdAt"] = created_at
    if updated_at is not None:
        record["updatedAt"] = updated_at
    return record


def page_to_record(page: Page) -> dict:
    """Renders a Page as a camelCase document."""
    return _to_record(page)


def project_to_record(project: Project) -> dict:
    """Renders a Project as a camelCase document."""
    return _to_record(project)


def strip_timestamps(record: dict) -> dict:
    return {k: v for k, v in record.items() if k not in TIMESTAMP_FIELDS}

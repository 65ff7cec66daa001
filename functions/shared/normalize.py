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

"""
Default-filling for stored pages and projects.

Stored documents are schemaless and may be missing any field. Each entity has
one declarative default table; `merge_defaults` lays a raw document over it so
that every field, at every depth, ends up populated.
"""

import copy
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional

from dacite import Config, from_dict

from shared.json_utils import convert_keys
from shared.site_content import (
    EXTRAS,
    Page,
    Project,
    page_to_record,
    project_to_record,
)

COMPLETION_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$", re.ASCII)

PAGE_DEFAULTS = {
    "title": "Untitled Page",
    "content": "",
    "type": "page",
    "seo": {
        "title": "",
        "description": "",
        "keywords": [],
        "canonicalUrl": "",
        "redirectUrl": "",
        "robots": {
            "noindex": False,
            "nofollow": False,
            "noarchive": False,
            "nosnippet": False,
            "noimageindex": False,
            "notranslate": False,
        },
        "schema": "",
        "social": {
            "ogTitle": "",
            "ogDescription": "",
            "ogImage": "",
            "twitterCard": "summary",
            "twitterTitle": "",
            "twitterDescription": "",
            "twitterImage": "",
        },
    },
}

PROJECT_DEFAULTS = {
    "title": "Untitled Project",
    "description": "",
    "category": "Residential",
    "image": "",
    "highlights": [],
    "type": "Unknown",
    "details": "",
    "tableOnly": False,
    "specifications": {
        "duration": "",
        "location": "",
        "services": [],
        "materials": [],
    },
    "projectDetails": {
        "challenge": "",
        "solution": "",
        "outcome": "",
    },
}

# Project fields with their own rules instead of a plain default.
_PROJECT_DERIVED_FIELDS = ("imageUrl", "completionDate", "gallery")
_RECORD_FIELDS = ("id", "createdAt", "updatedAt")

_DACITE_CONFIG = Config(check_types=False)


class NormalizationError(ValueError):
    """Raised when a stored document cannot be shaped into a typed record."""


def merge_defaults(defaults: Mapping, raw: Any, path: str = "") -> dict:
    """
    Returns `raw` with every field of `defaults` filled in.

    - scalars: the raw value unless it is missing or None
    - nested objects: merged recursively, so no sub-field is left unset
    - lists: the raw value only if it is a list, otherwise the default
    - keys `defaults` does not name are kept as stored

    An empty non-object value such as "" or False counts as missing.
    """
    if not isinstance(raw, Mapping):
        if raw:
            raise NormalizationError(
                f"{path or 'record'} must be an object, got {type(raw).__name__}"
            )
        raw = {}

    merged = {k: copy.deepcopy(v) for k, v in raw.items() if k not in defaults}
    for key, default in defaults.items():
        value = raw.get(key)
        field_path = f"{path}.{key}" if path else key
        if isinstance(default, Mapping):
            merged[key] = merge_defaults(default, value, field_path)
        elif isinstance(default, list):
            merged[key] = copy.deepcopy(value if isinstance(value, list) else default)
        else:
            merged[key] = default if value is None else copy.deepcopy(value)
    return merged


def _split_extras(defaults: Mapping, merged: Mapping, known: tuple = ()) -> dict:
    """Files keys that neither `defaults` nor `known` name under EXTRAS."""
    shaped = {}
    extras = {}
    for key, value in merged.items():
        default = defaults.get(key)
        if isinstance(default, Mapping):
            shaped[key] = _split_extras(default, value)
        elif key in defaults or key in known:
            shaped[key] = value
        else:
            extras[key] = value
    shaped[EXTRAS] = extras
    return shaped


def _to_fields(defaults: Mapping, merged: Mapping, known: tuple) -> dict:
    shaped = _split_extras(defaults, merged, known)
    return convert_keys(shaped, "camel_to_snake", preserve=(EXTRAS,))


def _record_id(raw: Mapping) -> str:
    doc_id = raw.get("id")
    return "" if doc_id is None else str(doc_id)


def today_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def normalize_completion_date(value: Any, today: Optional[str] = None) -> str:
    """
    Keeps `value` if it is shaped like YYYY-MM-DD, otherwise returns today.

    Only the shape is checked: "2024-02-30" is kept.
    """
    if isinstance(value, str) and COMPLETION_DATE_PATTERN.fullmatch(value):
        return value
    return today or today_iso()


def _normalize_gallery(value: Any) -> list:
    if not isinstance(value, list):
        return []
    gallery = []
    for index, entry in enumerate(value):
        if not isinstance(entry, Mapping):
            raise NormalizationError(
                f"gallery[{index}] must be an object, got {type(entry).__name__}"
            )
        url = entry.get("url")
        caption = entry.get("caption")
        gallery.append(
            {
                "url": "" if url is None else url,
                "caption": "" if caption is None else caption,
                EXTRAS: {
                    k: copy.deepcopy(v)
                    for k, v in entry.items()
                    if k not in ("url", "caption")
                },
            }
        )
    return gallery


def normalize_page(raw: Mapping | Page) -> Page:
    """Fills every missing Page field, including all SEO sub-fields."""
    if isinstance(raw, Page):
        raw = page_to_record(raw)
    if not isinstance(raw, Mapping):
        raise NormalizationError(f"page must be an object, got {type(raw).__name__}")

    merged = merge_defaults(PAGE_DEFAULTS, raw)
    data = _to_fields(PAGE_DEFAULTS, merged, _RECORD_FIELDS)
    data["id"] = _record_id(raw)
    return from_dict(data_class=Page, data=data, config=_DACITE_CONFIG)


def normalize_project(raw: Mapping | Project, today: Optional[str] = None) -> Project:
    """
    Fills every missing Project field.

    `imageUrl` falls back to `image`, a badly shaped `completionDate` becomes
    today's date, and gallery entries get a url and caption.
    """
    if isinstance(raw, Project):
        raw = project_to_record(raw)
    if not isinstance(raw, Mapping):
        raise NormalizationError(
            f"project must be an object, got {type(raw).__name__}"
        )

    merged = merge_defaults(PROJECT_DEFAULTS, raw)
    image_url = raw.get("imageUrl")
    merged["imageUrl"] = merged["image"] if image_url is None else image_url
    merged["completionDate"] = normalize_completion_date(
        raw.get("completionDate"), today=today
    )
    merged["gallery"] = _normalize_gallery(raw.get("gallery"))

    data = _to_fields(
        PROJECT_DEFAULTS, merged, _PROJECT_DERIVED_FIELDS + _RECORD_FIELDS
    )
    data["id"] = _record_id(raw)
    return from_dict(data_class=Project, data=data, config=_DACITE_CONFIG)

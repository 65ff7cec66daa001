"""
Pydantic schemas for the site content API.

Page and project bodies are camelCase documents; they are kept as plain dicts
because their shape is enforced by the normalizers, not by the schema.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class PageListResponse(BaseModel):
    pages: list[dict]


class ProjectListResponse(BaseModel):
    projects: list[dict]


class SavePageResponse(BaseModel):
    id: str


class DeleteResponse(BaseModel):
    status: Literal["ok"]

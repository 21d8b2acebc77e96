"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator


class BookmarkCreate(BaseModel):
    """Schema for creating a new bookmark. Only the URL is supplied by the client."""

    url: str

    @field_validator("url")
    @classmethod
    def url_not_blank(cls, v: str) -> str:
        """Strip whitespace and reject an empty URL."""
        v = v.strip()
        if not v:
            raise ValueError("URL must not be empty")
        return v


class BookmarkUpdate(BaseModel):
    """
    Schema for editing a bookmark.

    Only user-owned fields are editable; captured metadata (title, snapshot, favicon)
    is fixed at creation. Fields left out of the request body keep their values.
    """

    description: str | None = None
    tags: str | None = None
    archived: bool | None = None


class BookmarkResponse(BaseModel):
    """Schema for bookmark responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    title: str | None
    description: str | None
    tags: str | None
    snapshot_key: str | None
    favicon_key: str | None
    archived: bool
    created_at: datetime
    updated_at: datetime


class ErrorResponse(BaseModel):
    """Error body returned by the API for conflicts and failures."""

    error: str

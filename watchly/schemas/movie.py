from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

EDITABLE_FIELDS = ("title", "description", "category", "language", "quality")


class MovieFields(BaseModel):
    """Descriptive metadata supplied alongside an upload."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    language: Optional[str] = Field(None, max_length=64)
    quality: Optional[str] = Field(None, max_length=32)


class MovieUpdate(MovieFields):
    """Partial update; unknown keys are rejected."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class MovieCreate(MovieFields):
    """Everything needed to insert a record once both uploads have succeeded."""

    thumbnail_url: str
    thumbnail_asset_id: str
    video_url: str
    video_asset_id: str
    format: Optional[str] = None
    duration: Optional[float] = None
    byte_size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    created_at: datetime


class MovieRecord(MovieFields):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    thumbnail_url: Optional[str] = None
    thumbnail_asset_id: Optional[str] = None
    video_url: Optional[str] = None
    video_asset_id: Optional[str] = None
    format: Optional[str] = None
    duration: Optional[float] = None
    byte_size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    created_at: datetime


class DeleteResult(BaseModel):
    success: bool = True
    message: str = "Movie deleted"


__all__ = ["EDITABLE_FIELDS", "MovieFields", "MovieUpdate", "MovieCreate", "MovieRecord", "DeleteResult"]

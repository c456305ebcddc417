"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, HttpUrl, field_validator, model_validator

from core.config import get_settings
from schemas.validators import validate_title


class BookmarkCreate(BaseModel):
    """Schema for creating a new bookmark. Summary and tags are generated server-side."""

    title: str
    # HttpUrl rejects relative and non-http(s) URLs; root domains gain a trailing slash
    url: HttpUrl

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        """Reject blank titles and enforce the length limit."""
        return validate_title(v)

    @field_validator("url", mode="before")
    @classmethod
    def check_url_length(cls, v: Any) -> Any:
        """Enforce the URL length limit before parsing."""
        settings = get_settings()
        if isinstance(v, str):
            v = v.strip()
            if len(v) > settings.max_url_length:
                raise ValueError(
                    f"URL exceeds maximum length of {settings.max_url_length:,} characters.",
                )
        return v


class BookmarkResponse(BaseModel):
    """
    Schema for a stored bookmark.

    Also the payload of bookmark events, so every session renders the same shape.
    Tags are read from the tag_objects relationship and are never null.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    title: str
    url: str
    summary: str | None
    tags: list[str] = []
    created_at: datetime

    @model_validator(mode="before")
    @classmethod
    def extract_tag_names(cls, data: Any) -> Any:
        """
        Extract tag names from tag_objects relationship.

        Only accesses tag_objects if it's already loaded (not lazy) to avoid
        triggering database queries outside async context.
        """
        if hasattr(data, "__dict__") and "tag_objects" in getattr(data, "__dict__", {}):
            data_dict = {
                key: getattr(data, key)
                for key in ["id", "user_id", "title", "url", "summary", "created_at"]
            }
            data_dict["tags"] = [tag.name for tag in data.__dict__["tag_objects"] or []]
            return data_dict
        if isinstance(data, dict) and data.get("tags") is None:
            return {**data, "tags": []}
        return data


class DeleteBookmarkResponse(BaseModel):
    """Schema returned after a successful delete."""

    success: bool = True

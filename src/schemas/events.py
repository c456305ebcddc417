"""Schemas for bookmark change events sent over per-user channels."""
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class BookmarkEventType(StrEnum):
    """Kind of change announced on a user's channel."""

    ADDED = "bookmark_added"
    DELETED = "bookmark_deleted"


class BookmarkEvent(BaseModel):
    """
    Envelope published after a bookmark is added or deleted.

    The payload is the full bookmark row. It is kept as a plain dict so a
    receiver can still act on a partial payload (a delete only needs the id).
    """

    event: BookmarkEventType
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def bookmark_id(self) -> str | None:
        """String form of the payload id, or None when the payload has no id."""
        raw = self.payload.get("id")
        if raw is None or raw == "":
            return None
        return str(raw)


def channel_for_user(user_id: UUID | str) -> str:
    """Name of the pub/sub channel carrying a user's bookmark events."""
    return f"bookmarks:{user_id}"

"""Shared exceptions for service layer operations."""
from uuid import UUID


class BookmarkNotFoundError(Exception):
    """
    Raised when a bookmark does not exist or belongs to another user.

    The two cases are deliberately indistinguishable to the caller.
    """

    def __init__(self, bookmark_id: UUID) -> None:
        self.bookmark_id = bookmark_id
        super().__init__(f"Bookmark '{bookmark_id}' not found")


class BookmarkPersistenceError(Exception):
    """Raised when the data store rejects or fails a bookmark write."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Could not {operation} bookmark")

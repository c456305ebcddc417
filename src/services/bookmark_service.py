"""Service layer for bookmark operations."""
import logging
from uuid import UUID

from sqlalchemy import Exists, exists, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.tag import Tag, bookmark_tags
from schemas.bookmark import BookmarkCreate, BookmarkResponse
from services.enrichment import BookmarkEnricher
from services.exceptions import BookmarkNotFoundError, BookmarkPersistenceError
from services.tag_service import get_or_create_tags

logger = logging.getLogger(__name__)


def escape_ilike(value: str) -> str:
    r"""
    Escape special ILIKE characters for safe use in LIKE/ILIKE patterns.

    PostgreSQL LIKE/ILIKE treats these characters specially:
    - % matches any sequence of characters
    - _ matches any single character
    - \\ is the escape character

    This function escapes them so they match literally.
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def has_tag_clause(tag_name: str, user_id: UUID) -> Exists:
    """EXISTS clause matching bookmarks that carry the given tag."""
    subq = (
        select(bookmark_tags.c.bookmark_id)
        .join(Tag, bookmark_tags.c.tag_id == Tag.id)
        .where(
            bookmark_tags.c.bookmark_id == Bookmark.id,
            Tag.name == tag_name,
            Tag.user_id == user_id,
        )
    )
    return exists(subq)


async def create_bookmark(
    db: AsyncSession,
    user_id: UUID,
    data: BookmarkCreate,
    enricher: BookmarkEnricher,
) -> Bookmark:
    """
    Enrich and store a new bookmark for a user.

    Enrichment never fails (it falls back to keyword tagging), so the only
    failure after validation is the write itself.

    Args:
        db: Database session.
        user_id: Owner of the new bookmark.
        data: Validated title and URL.
        enricher: Produces the summary and tags.

    Returns:
        The stored bookmark with id, timestamp, summary, and tags.

    Raises:
        BookmarkPersistenceError: If the insert fails.

    Note:
        Does not commit. Caller handles commit.
    """
    url_str = str(data.url)
    enrichment = await enricher.enrich(url_str, data.title)
    logger.info(
        "bookmark_enriched",
        extra={"source": enrichment.source, "tag_count": len(enrichment.tags)},
    )

    try:
        tag_objects = await get_or_create_tags(db, user_id, enrichment.tags)
        bookmark = Bookmark(
            user_id=user_id,
            title=data.title,
            url=url_str,
            summary=enrichment.summary,
        )
        bookmark.tag_objects = tag_objects
        db.add(bookmark)
        await db.flush()
        await db.refresh(bookmark)
        # Ensure tag_objects is loaded for the response
        await db.refresh(bookmark, attribute_names=["tag_objects"])
    except SQLAlchemyError as e:
        logger.exception("Failed to insert bookmark for user %s", user_id)
        await db.rollback()
        raise BookmarkPersistenceError("save") from e
    return bookmark


async def get_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
) -> Bookmark | None:
    """Get a bookmark by ID, scoped to user. Returns None if not found or wrong user."""
    result = await db.execute(
        select(Bookmark).where(
            Bookmark.id == bookmark_id,
            Bookmark.user_id == user_id,
        ),
    )
    return result.scalar_one_or_none()


async def search_bookmarks(
    db: AsyncSession,
    user_id: UUID,
    query: str | None = None,
    tag: str | None = None,
) -> list[Bookmark]:
    """
    List a user's bookmarks, newest first, with optional search and tag filter.

    Args:
        db: Database session.
        user_id: Owner whose bookmarks are listed.
        query: Case-insensitive substring matched against title and URL.
        tag: Only bookmarks carrying this tag.

    Returns:
        Matching bookmarks. An empty list if the query fails, so a data store
        outage degrades the list view instead of breaking it.
    """
    stmt = select(Bookmark).where(Bookmark.user_id == user_id)

    if query and query.strip():
        pattern = f"%{escape_ilike(query.strip())}%"
        stmt = stmt.where(
            or_(
                Bookmark.title.ilike(pattern, escape="\\"),
                Bookmark.url.ilike(pattern, escape="\\"),
            ),
        )

    if tag and tag.strip():
        stmt = stmt.where(has_tag_clause(tag.strip().lower(), user_id))

    # id is UUIDv7, so it breaks created_at ties in insertion order
    stmt = stmt.order_by(Bookmark.created_at.desc(), Bookmark.id.desc())

    try:
        result = await db.execute(stmt)
    except SQLAlchemyError:
        logger.exception("Failed to list bookmarks for user %s", user_id)
        await db.rollback()
        return []
    return list(result.scalars().all())


async def delete_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
) -> BookmarkResponse:
    """
    Delete a bookmark and return its contents as they were before deletion.

    The returned snapshot is the payload other sessions need to retract the row.

    Raises:
        BookmarkNotFoundError: If the bookmark doesn't exist or belongs to another user.
        BookmarkPersistenceError: If the delete fails.

    Note:
        Does not commit. Caller handles commit.
    """
    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        raise BookmarkNotFoundError(bookmark_id)

    snapshot = BookmarkResponse.model_validate(bookmark)
    try:
        await db.delete(bookmark)
        await db.flush()
    except SQLAlchemyError as e:
        logger.exception("Failed to delete bookmark %s", bookmark_id)
        await db.rollback()
        raise BookmarkPersistenceError("delete") from e
    return snapshot

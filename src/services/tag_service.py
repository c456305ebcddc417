"""Service layer for tag operations."""
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.tag import Tag, bookmark_tags
from schemas.validators import validate_and_normalize_tag

logger = logging.getLogger(__name__)


async def _fetch_tags(db: AsyncSession, user_id: UUID, names: list[str]) -> dict[str, Tag]:
    """Existing tags of a user with the given names, keyed by name."""
    result = await db.execute(
        select(Tag).where(
            Tag.user_id == user_id,
            Tag.name.in_(names),
        ),
    )
    return {tag.name: tag for tag in result.scalars()}


async def _create_tag(db: AsyncSession, user_id: UUID, name: str) -> Tag:
    """
    Insert a tag, or load it if a concurrent request created it first.

    The insert runs in a savepoint so a unique violation on
    uq_tags_user_id_name only rolls back this tag, not the caller's transaction.
    """
    tag = Tag(user_id=user_id, name=name)
    try:
        async with db.begin_nested():  # Creates savepoint
            db.add(tag)
    except IntegrityError:
        # Savepoint rolled back; the other request's row is now visible
        existing = await _fetch_tags(db, user_id, [name])
        if name not in existing:
            raise
        logger.debug("Tag %s created concurrently for user %s", name, user_id)
        return existing[name]
    return tag


async def get_or_create_tags(
    db: AsyncSession,
    user_id: UUID,
    tag_names: list[str],
) -> list[Tag]:
    """
    Get existing tags or create new ones.

    Safe against concurrent requests of the same user creating the same tag.

    Args:
        db: Database session.
        user_id: User ID to scope tags.
        tag_names: List of tag names to get or create.

    Returns:
        List of Tag objects (existing or newly created), in input order.

    Raises:
        ValueError: If any tag has an invalid format.
    """
    if not tag_names:
        return []

    normalized = list(dict.fromkeys(validate_and_normalize_tag(name) for name in tag_names))

    tags_by_name = await _fetch_tags(db, user_id, normalized)
    for name in normalized:
        if name not in tags_by_name:
            tags_by_name[name] = await _create_tag(db, user_id, name)

    return [tags_by_name[name] for name in normalized]


async def get_user_tag_names(db: AsyncSession, user_id: UUID) -> list[str]:
    """
    Get the distinct tag names used by a user's bookmarks, sorted ascending.

    Tags no longer attached to any bookmark are left out. Returns an empty
    list if the query fails.
    """
    try:
        result = await db.execute(
            select(Tag.name)
            .join(bookmark_tags, Tag.id == bookmark_tags.c.tag_id)
            .join(Bookmark, bookmark_tags.c.bookmark_id == Bookmark.id)
            .where(
                Tag.user_id == user_id,
                Bookmark.user_id == user_id,
            )
            .distinct(),
        )
    except SQLAlchemyError:
        logger.exception("Failed to load tags for user %s", user_id)
        await db.rollback()
        return []
    # Sorted in Python so ordering does not depend on the database collation
    return sorted(result.scalars())

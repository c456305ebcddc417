"""Tests for the bookmark service layer."""
from unittest.mock import patch
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.tag import Tag
from models.user import User
from schemas.bookmark import BookmarkCreate
from services import bookmark_service, tag_service
from services.bookmark_service import escape_ilike
from services.enrichment import BookmarkEnricher, EnrichmentResult
from services.exceptions import BookmarkNotFoundError, BookmarkPersistenceError


class StaticEnricher(BookmarkEnricher):
    """Enricher returning fixed tags, so tests control what gets stored."""

    def __init__(self, tags: list[str], summary: str = "A summary.") -> None:
        super().__init__(None)
        self._result = EnrichmentResult(summary=summary, tags=tags, source="ai")

    async def enrich(self, url: str, title: str) -> EnrichmentResult:  # noqa: ARG002
        return self._result


async def _add(
    db: AsyncSession,
    user: User,
    title: str,
    url: str,
    tags: list[str] | None = None,
) -> Bookmark:
    enricher = StaticEnricher(tags) if tags is not None else BookmarkEnricher(None)
    return await bookmark_service.create_bookmark(
        db, user.id, BookmarkCreate(title=title, url=url), enricher,
    )


def test__escape_ilike__escapes_wildcards() -> None:
    assert escape_ilike("100%_done\\") == "100\\%\\_done\\\\"


class TestCreateBookmark:
    async def test__create_bookmark__stores_enriched_row(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        bookmark = await _add(db_session, test_user, "Next.js Docs", "https://nextjs.org/docs")

        assert bookmark.id is not None
        assert bookmark.created_at is not None
        assert bookmark.user_id == test_user.id
        assert bookmark.title == "Next.js Docs"
        assert bookmark.url == "https://nextjs.org/docs"
        assert bookmark.summary == 'This bookmark is a useful reference about "Next.js Docs".'
        # Rendered sorted by name
        assert bookmark.tags == ["documentation", "frontend"]

    async def test__create_bookmark__reuses_existing_tags(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        first = await _add(db_session, test_user, "One", "https://one.example.com", ["python"])
        second = await _add(db_session, test_user, "Two", "https://two.example.com", ["python"])

        assert first.tag_objects[0].id == second.tag_objects[0].id

    async def test__create_bookmark__tag_created_by_concurrent_add(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        """Two adds needing the same new tag both succeed and share the tag."""
        first = await _add(db_session, test_user, "One", "https://one.example.com", ["general"])
        real_fetch = tag_service._fetch_tags
        lookups = 0

        async def stale_first_lookup(
            db: AsyncSession, user_id: UUID, names: list[str],
        ) -> dict[str, Tag]:
            nonlocal lookups
            lookups += 1
            if lookups == 1:
                return {}
            return await real_fetch(db, user_id, names)

        with patch("services.tag_service._fetch_tags", side_effect=stale_first_lookup):
            second = await _add(
                db_session, test_user, "Two", "https://two.example.com", ["general"],
            )

        assert second.tags == ["general"]
        assert second.tag_objects[0].id == first.tag_objects[0].id

    async def test__create_bookmark__write_failure_raises(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        with (
            patch.object(
                db_session, "flush", side_effect=OperationalError("INSERT", {}, Exception("down")),
            ),
            pytest.raises(BookmarkPersistenceError, match="save"),
        ):
            await _add(db_session, test_user, "Example", "https://example.com")


class TestSearchBookmarks:
    async def test__search_bookmarks__newest_first(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        first = await _add(db_session, test_user, "First", "https://1.example.com")
        second = await _add(db_session, test_user, "Second", "https://2.example.com")
        third = await _add(db_session, test_user, "Third", "https://3.example.com")

        results = await bookmark_service.search_bookmarks(db_session, test_user.id)

        assert [b.id for b in results] == [third.id, second.id, first.id]

    async def test__search_bookmarks__case_insensitive_title_and_url(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        await _add(db_session, test_user, "Python Tips", "https://a.example.com")
        await _add(db_session, test_user, "Other", "https://python.org")
        await _add(db_session, test_user, "Unrelated", "https://b.example.com")

        results = await bookmark_service.search_bookmarks(db_session, test_user.id, query="PYTHON")

        assert sorted(b.title for b in results) == ["Other", "Python Tips"]

    async def test__search_bookmarks__wildcards_match_literally(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        await _add(db_session, test_user, "100% coverage", "https://a.example.com")
        await _add(db_session, test_user, "1000 tips", "https://b.example.com")

        results = await bookmark_service.search_bookmarks(db_session, test_user.id, query="100%")

        assert [b.title for b in results] == ["100% coverage"]

    async def test__search_bookmarks__tag_filter(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        await _add(db_session, test_user, "A", "https://a.example.com", ["python", "web"])
        await _add(db_session, test_user, "B", "https://b.example.com", ["web"])

        results = await bookmark_service.search_bookmarks(db_session, test_user.id, tag="python")

        assert [b.title for b in results] == ["A"]

    async def test__search_bookmarks__query_and_tag_combined(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        await _add(db_session, test_user, "Web Python", "https://a.example.com", ["web"])
        await _add(db_session, test_user, "Web Go", "https://b.example.com", ["web"])
        await _add(db_session, test_user, "Python CLI", "https://c.example.com", ["cli"])

        results = await bookmark_service.search_bookmarks(
            db_session, test_user.id, query="python", tag="web",
        )

        assert [b.title for b in results] == ["Web Python"]

    async def test__search_bookmarks__owner_scoped(
        self, db_session: AsyncSession, test_user: User, other_user: User,
    ) -> None:
        await _add(db_session, test_user, "Mine", "https://a.example.com", ["shared"])
        await _add(db_session, other_user, "Theirs", "https://b.example.com", ["shared"])

        results = await bookmark_service.search_bookmarks(db_session, test_user.id, tag="shared")

        assert [b.title for b in results] == ["Mine"]

    async def test__search_bookmarks__failure_returns_empty_list(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        with patch.object(db_session, "execute", side_effect=SQLAlchemyError("down")):
            results = await bookmark_service.search_bookmarks(db_session, test_user.id)

        assert results == []


class TestDeleteBookmark:
    async def test__delete_bookmark__returns_snapshot_and_removes_row(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        bookmark = await _add(db_session, test_user, "Doomed", "https://a.example.com", ["x"])
        bookmark_id = bookmark.id

        snapshot = await bookmark_service.delete_bookmark(db_session, test_user.id, bookmark_id)

        assert snapshot.id == bookmark_id
        assert snapshot.title == "Doomed"
        assert snapshot.tags == ["x"]
        result = await db_session.execute(select(Bookmark).where(Bookmark.id == bookmark_id))
        assert result.scalar_one_or_none() is None

    async def test__delete_bookmark__not_found(
        self, db_session: AsyncSession, test_user: User,
    ) -> None:
        with pytest.raises(BookmarkNotFoundError):
            await bookmark_service.delete_bookmark(db_session, test_user.id, uuid4())

    async def test__delete_bookmark__other_users_bookmark_not_found(
        self, db_session: AsyncSession, test_user: User, other_user: User,
    ) -> None:
        theirs = await _add(db_session, other_user, "Theirs", "https://a.example.com")

        with pytest.raises(BookmarkNotFoundError):
            await bookmark_service.delete_bookmark(db_session, test_user.id, theirs.id)

        still_there = await bookmark_service.get_bookmark(db_session, other_user.id, theirs.id)
        assert still_there is not None

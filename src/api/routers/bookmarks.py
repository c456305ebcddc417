"""Bookmark endpoints: add, list/search/filter, delete, and the live event stream."""
import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user, get_enricher, get_notifier
from api.helpers import bookmark_event_stream
from models.user import User
from schemas.bookmark import BookmarkCreate, BookmarkResponse, DeleteBookmarkResponse
from schemas.events import BookmarkEventType, channel_for_user
from services import bookmark_service
from services.enrichment import BookmarkEnricher
from services.exceptions import BookmarkNotFoundError, BookmarkPersistenceError
from services.notifier import BookmarkNotifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


async def _commit(db: AsyncSession, operation: str) -> None:
    """Commit before announcing a change, so events never describe uncommitted rows."""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        logger.exception("Commit failed while trying to %s bookmark", operation)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Could not {operation} bookmark",
        ) from e


@router.post("/", response_model=BookmarkResponse, status_code=201)
async def create_bookmark(
    data: BookmarkCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    enricher: BookmarkEnricher = Depends(get_enricher),
    notifier: BookmarkNotifier = Depends(get_notifier),
) -> BookmarkResponse:
    """
    Save a bookmark with an AI-generated summary and tags.

    If the AI service is unavailable the summary and tags come from a keyword
    fallback; the request still succeeds. Other sessions of the same user are
    notified after the response is sent.
    """
    try:
        bookmark = await bookmark_service.create_bookmark(db, current_user.id, data, enricher)
    except BookmarkPersistenceError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e
    response = BookmarkResponse.model_validate(bookmark)
    await _commit(db, "save")

    background_tasks.add_task(
        notifier.notify, current_user.id, BookmarkEventType.ADDED, response,
    )
    return response


@router.get("/", response_model=list[BookmarkResponse])
async def list_bookmarks(
    q: str | None = Query(default=None, description="Search text for title and url"),
    tag: str | None = Query(default=None, description="Only bookmarks with this tag"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> list[BookmarkResponse]:
    """
    List the current user's bookmarks, newest first.

    - **q**: Text search across title and url (case-insensitive)
    - **tag**: Filter to bookmarks carrying this tag

    Returns an empty list if bookmarks cannot be loaded.
    """
    bookmarks = await bookmark_service.search_bookmarks(db, current_user.id, query=q, tag=tag)
    return [BookmarkResponse.model_validate(b) for b in bookmarks]


@router.get("/events")
async def stream_bookmark_events(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    notifier: BookmarkNotifier = Depends(get_notifier),
) -> StreamingResponse:
    """
    Server-Sent Events stream of the current user's bookmark changes.

    Emits `bookmark_added` and `bookmark_deleted` events whose data is the
    bookmark row. Clients merge them into their list by id.
    """
    channel = channel_for_user(current_user.id)
    # Release the database connection before the long-lived stream starts
    await db.commit()
    return StreamingResponse(
        bookmark_event_stream(request, notifier.broadcaster, channel),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.delete("/{bookmark_id}", response_model=DeleteBookmarkResponse)
async def delete_bookmark(
    bookmark_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    notifier: BookmarkNotifier = Depends(get_notifier),
) -> DeleteBookmarkResponse:
    """
    Delete a bookmark.

    Returns 404 if the bookmark doesn't exist or belongs to another user.
    """
    try:
        parsed_id = UUID(bookmark_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Bookmark not found")

    try:
        snapshot = await bookmark_service.delete_bookmark(db, current_user.id, parsed_id)
    except BookmarkNotFoundError as e:
        raise HTTPException(status_code=404, detail="Bookmark not found") from e
    except BookmarkPersistenceError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e
    await _commit(db, "delete")

    background_tasks.add_task(
        notifier.notify, current_user.id, BookmarkEventType.DELETED, snapshot,
    )
    return DeleteBookmarkResponse()

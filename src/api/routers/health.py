"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_notifier, get_redis_client
from core.redis import RedisClient
from services.notifier import BookmarkNotifier


logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    redis: str
    broadcast: str
    undelivered_events: int


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_async_session),
    redis_client: RedisClient | None = Depends(get_redis_client),
    notifier: BookmarkNotifier = Depends(get_notifier),
) -> HealthResponse:
    """
    Check application, database, and event transport health.

    Only the database affects the overall status; the event transport is
    best-effort and reported for visibility.
    """
    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        db_status = "unhealthy"

    if redis_client is None or not redis_client.is_connected:
        redis_status = "disabled"
    else:
        redis_status = "healthy" if await redis_client.ping() else "unhealthy"

    broadcast_status = "healthy" if await notifier.broadcaster.is_healthy() else "unhealthy"

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        database=db_status,
        redis=redis_status,
        broadcast=broadcast_status,
        undelivered_events=len(notifier.undelivered),
    )

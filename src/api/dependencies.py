"""FastAPI dependencies for injection."""
from fastapi import Request

from core.auth import get_current_user
from core.redis import RedisClient
from db.session import get_async_session
from services.enrichment import BookmarkEnricher
from services.notifier import BookmarkNotifier


def get_enricher(request: Request) -> BookmarkEnricher:
    """Enrichment service created by the application lifespan."""
    return request.app.state.enricher


def get_notifier(request: Request) -> BookmarkNotifier:
    """Bookmark event notifier created by the application lifespan."""
    return request.app.state.notifier


def get_redis_client(request: Request) -> RedisClient | None:
    """Redis client created by the application lifespan, if any."""
    return getattr(request.app.state, "redis_client", None)


__all__ = [
    "get_async_session",
    "get_current_user",
    "get_enricher",
    "get_notifier",
    "get_redis_client",
]

"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import bookmarks, health, tags, users
from core.config import Settings, get_settings
from core.redis import RedisClient
from db.session import Database
from services.broadcast import Broadcaster, InMemoryBroadcaster, RedisBroadcaster
from services.enrichment import BookmarkEnricher
from services.notifier import BookmarkNotifier

logger = logging.getLogger(__name__)


def build_enricher(settings: Settings) -> BookmarkEnricher:
    """Enricher using OpenAI when a key is configured, keyword fallback otherwise."""
    client = AsyncOpenAI(api_key=settings.openai_api_key) if settings.openai_enabled else None
    if client is None:
        logger.info("OPENAI_API_KEY not set, bookmarks will use keyword tagging")
    return BookmarkEnricher(
        client,
        model=settings.openai_model,
        temperature=settings.openai_temperature,
    )


def build_broadcaster(redis_client: RedisClient) -> Broadcaster:
    """Redis pub/sub when connected, otherwise in-process fan-out."""
    if redis_client.is_connected:
        return RedisBroadcaster(redis_client)
    logger.warning(
        "Redis unavailable, bookmark events will only reach sessions on this process",
    )
    return InMemoryBroadcaster()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()

    # Startup: database engine and Redis
    database = Database.from_settings(app_settings)
    redis_client = RedisClient(
        url=app_settings.redis_url,
        enabled=app_settings.redis_enabled,
        pool_size=app_settings.redis_pool_size,
    )
    await redis_client.connect()

    app.state.database = database
    app.state.redis_client = redis_client
    app.state.notifier = BookmarkNotifier(
        build_broadcaster(redis_client),
        undelivered_limit=app_settings.undelivered_events_limit,
    )
    app.state.enricher = build_enricher(app_settings)

    yield

    # Shutdown: Redis first so open event streams end, then the engine
    await redis_client.close()
    await database.dispose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # HSTS: enforce HTTPS for 1 year, including subdomains
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking - API shouldn't be framed
        response.headers["X-Frame-Options"] = "DENY"
        return response


app_settings = get_settings()

app = FastAPI(
    title="Bookmarks API",
    description="Personal bookmarks with AI summaries, tags, search, and live updates.",
    version="0.1.0",
    lifespan=lifespan,
)

# Security headers middleware (runs after CORS, adds headers to responses)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(users.router)
app.include_router(bookmarks.router)
app.include_router(tags.router)

"""Server-Sent Events stream of a user's bookmark channel."""
import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator

from fastapi import Request

from schemas.events import BookmarkEvent
from services.broadcast import Broadcaster, Subscription
from services.reconcile import parse_event

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0


def format_sse(event: BookmarkEvent) -> str:
    """Render an event as an SSE frame whose data is the bookmark payload."""
    return f"event: {event.event.value}\ndata: {json.dumps(event.payload)}\n\n"


async def _next_message(messages: Subscription) -> str | None:
    try:
        return await anext(messages)
    except StopAsyncIteration:
        return None


async def bookmark_event_stream(
    request: Request,
    broadcaster: Broadcaster,
    channel: str,
    keepalive_seconds: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """
    Relay events from a channel to one client as SSE frames.

    The subscription is open before the first ": connected" frame, so a
    client that saw it will receive every event published afterwards.
    Sends a comment frame when idle so proxies keep the connection open.
    Malformed messages are dropped. Ends when the client disconnects or the
    subscription ends.
    """
    subscription = await broadcaster.subscribe(channel)
    pending: asyncio.Task[str | None] | None = None
    logger.debug("SSE subscriber connected to %s", channel)
    try:
        yield ": connected\n\n"
        while not await request.is_disconnected():
            # The read task survives keepalive timeouts so no message is lost
            if pending is None:
                pending = asyncio.create_task(_next_message(subscription))
            done, _ = await asyncio.wait({pending}, timeout=keepalive_seconds)
            if not done:
                yield ": keepalive\n\n"
                continue
            task, pending = pending, None
            raw = task.result()
            if raw is None:
                break
            event = parse_event(raw)
            if event is not None:
                yield format_sse(event)
    finally:
        if pending is not None:
            pending.cancel()
            # The subscription cannot be closed while the read is still running
            with contextlib.suppress(asyncio.CancelledError):
                await pending
        await subscription.aclose()
        logger.debug("SSE subscriber disconnected from %s", channel)

"""
Notification step that announces committed bookmark changes.

Routers schedule notify() as a background task after the database commit, so
the write and the broadcast are independent: a failed publish never rolls
back a write and is never reported to the caller. Failed events are kept in
a bounded buffer where they can be inspected and re-published.
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from schemas.bookmark import BookmarkResponse
from schemas.events import BookmarkEvent, BookmarkEventType, channel_for_user
from services.broadcast import BroadcastError, Broadcaster

logger = logging.getLogger(__name__)


@dataclass
class UndeliveredEvent:
    """An event whose publish failed."""

    channel: str
    message: str
    error: str
    failed_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def build_event(event_type: BookmarkEventType, bookmark: BookmarkResponse) -> BookmarkEvent:
    """Wrap a bookmark row in an event envelope with a JSON-safe payload."""
    return BookmarkEvent(event=event_type, payload=bookmark.model_dump(mode="json"))


class BookmarkNotifier:
    """Publishes bookmark events on the owner's channel, one attempt per event."""

    def __init__(self, broadcaster: Broadcaster, undelivered_limit: int = 1000) -> None:
        self._broadcaster = broadcaster
        self._undelivered: deque[UndeliveredEvent] = deque(maxlen=undelivered_limit)
        self.published_count = 0
        self.failed_count = 0  # failed publish attempts, including retries

    @property
    def broadcaster(self) -> Broadcaster:
        """Transport used for publishing and subscribing."""
        return self._broadcaster

    @property
    def undelivered(self) -> list[UndeliveredEvent]:
        """Events whose publish failed and have not been re-published."""
        return list(self._undelivered)

    async def notify(
        self,
        user_id: UUID,
        event_type: BookmarkEventType,
        bookmark: BookmarkResponse,
    ) -> bool:
        """
        Publish a change event for one bookmark.

        Returns True if the transport accepted the event. Failures are logged
        and recorded, never raised.
        """
        channel = channel_for_user(user_id)
        message = build_event(event_type, bookmark).model_dump_json()
        return await self._publish(channel, message)

    async def _publish(self, channel: str, message: str) -> bool:
        try:
            await self._broadcaster.publish(channel, message)
        except BroadcastError as e:
            self.failed_count += 1
            self._undelivered.append(
                UndeliveredEvent(channel=channel, message=message, error=e.reason),
            )
            logger.warning(
                "bookmark_event_undelivered",
                extra={"channel": channel, "reason": e.reason},
            )
            return False
        self.published_count += 1
        return True

    async def retry_undelivered(self) -> int:
        """
        Re-publish every undelivered event once.

        Events that fail again stay in the buffer. Returns the number delivered.
        """
        pending = list(self._undelivered)
        self._undelivered.clear()
        delivered = 0
        for item in pending:
            # _publish re-records the event on failure
            if await self._publish(item.channel, item.message):
                delivered += 1
        if pending:
            logger.info("Retried %d undelivered events, %d delivered", len(pending), delivered)
        return delivered

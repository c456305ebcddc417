"""
Pub/sub transports for bookmark events.

A broadcaster publishes a serialized event on a named channel and lets a
session subscribe to that channel. Delivery is best-effort: there is no
ordering or durability guarantee, and a subscriber only sees messages
published while it is subscribed.
"""
import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from typing import Protocol

from core.redis import RedisClient

logger = logging.getLogger(__name__)


class BroadcastError(Exception):
    """Raised when an event could not be handed to the pub/sub transport."""

    def __init__(self, channel: str, reason: str) -> None:
        self.channel = channel
        self.reason = reason
        super().__init__(f"Failed to publish on '{channel}': {reason}")


class Subscription(Protocol):
    """An open subscription to one channel."""

    def __aiter__(self) -> AsyncIterator[str]:
        ...

    async def __anext__(self) -> str:
        ...

    async def aclose(self) -> None:
        """Stop receiving messages."""
        ...


class Broadcaster(Protocol):
    """Transport used to fan bookmark events out to a user's sessions."""

    async def publish(self, channel: str, message: str) -> None:
        """Publish a message. Raises BroadcastError on failure."""
        ...

    async def subscribe(self, channel: str) -> Subscription:
        """
        Open a subscription to a channel.

        Messages published after this returns are delivered to it.
        """
        ...

    async def is_healthy(self) -> bool:
        """Report whether the transport can currently publish."""
        ...


class RedisBroadcaster:
    """Broadcaster backed by Redis PUBLISH/SUBSCRIBE."""

    def __init__(self, redis_client: RedisClient) -> None:
        self._redis = redis_client

    async def publish(self, channel: str, message: str) -> None:
        """Publish a message on a Redis channel."""
        receivers = await self._redis.publish(channel, message)
        if receivers is None:
            raise BroadcastError(channel, "redis unavailable")
        logger.debug("Published to %s (%d receivers)", channel, receivers)

    async def subscribe(self, channel: str) -> Subscription:
        """Subscribe to a Redis channel once SUBSCRIBE is acknowledged."""
        return await self._redis.subscribe(channel)

    async def is_healthy(self) -> bool:
        """True when Redis answers a ping."""
        return await self._redis.ping()


class InMemorySubscription:
    """A registered subscription on an InMemoryBroadcaster channel."""

    def __init__(self, broadcaster: "InMemoryBroadcaster", channel: str) -> None:
        self._broadcaster = broadcaster
        self.channel = channel
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        broadcaster._register(channel, self._queue)

    def __aiter__(self) -> "InMemorySubscription":
        return self

    async def __anext__(self) -> str:
        return await self._queue.get()

    def pending(self) -> list[str]:
        """Return and remove the messages already delivered but not yet read."""
        messages = []
        while not self._queue.empty():
            messages.append(self._queue.get_nowait())
        return messages

    async def aclose(self) -> None:
        """Stop receiving messages."""
        self._broadcaster._unregister(self.channel, self._queue)


class InMemoryBroadcaster:
    """
    Broadcaster that fans out to subscribers inside the current process.

    Used when Redis is disabled or unreachable (single-process deployments)
    and in tests. Subscriptions are registered as soon as subscribe() returns,
    so nothing published afterwards is missed.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, set[asyncio.Queue[str]]] = defaultdict(set)

    def _register(self, channel: str, queue: asyncio.Queue[str]) -> None:
        self._subscribers[channel].add(queue)

    def _unregister(self, channel: str, queue: asyncio.Queue[str]) -> None:
        queues = self._subscribers.get(channel)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[channel]

    async def publish(self, channel: str, message: str) -> None:
        """Deliver a message to every current subscriber of a channel."""
        for queue in list(self._subscribers.get(channel, ())):
            queue.put_nowait(message)

    async def subscribe(self, channel: str) -> InMemorySubscription:
        """Register a subscription on a channel."""
        return InMemorySubscription(self, channel)

    def subscriber_count(self, channel: str) -> int:
        """Number of live subscriptions on a channel."""
        return len(self._subscribers.get(channel, ()))

    async def is_healthy(self) -> bool:
        """Always healthy: delivery never leaves the process."""
        return True

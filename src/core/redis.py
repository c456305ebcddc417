"""Redis client with connection pooling and graceful fallback."""
import logging

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisClient:
    """Async Redis client with connection pooling and graceful fallback."""

    def __init__(self, url: str, enabled: bool = True, pool_size: int = 20) -> None:
        self._url = url
        self._enabled = enabled
        self._pool_size = pool_size
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None

    async def connect(self) -> None:
        """Initialize connection pool and verify connectivity."""
        if not self._enabled:
            logger.info("Redis disabled by configuration")
            return
        try:
            self._pool = ConnectionPool.from_url(self._url, max_connections=self._pool_size)
            self._client = Redis(connection_pool=self._pool)
            # Verify connection
            await self._client.ping()
            logger.info("Redis connected successfully")
        except RedisError as e:
            logger.warning("Redis connection failed: %s", e)
            self._client = None
            self._pool = None

    async def close(self) -> None:
        """Close connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._pool = None
            logger.info("Redis connection closed")

    @property
    def is_connected(self) -> bool:
        """Check if client is connected."""
        return self._client is not None

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        if not self._client:
            return False
        try:
            return await self._client.ping()
        except RedisError:
            return False

    async def publish(self, channel: str, message: str) -> int | None:
        """
        Publish a message on a channel.

        Returns the number of subscribers that received it, or None if Redis is
        unavailable or the publish failed.
        """
        if not self._client:
            return None
        try:
            return await self._client.publish(channel, message)
        except RedisError as e:
            logger.warning("Redis PUBLISH failed: %s", e)
            return None

    async def subscribe(self, channel: str) -> "RedisSubscription":
        """
        Subscribe to a channel.

        SUBSCRIBE has been acknowledged by the time this returns, so messages
        published afterwards are delivered. The subscription yields nothing if
        Redis is unavailable or the subscribe failed.
        """
        if not self._client:
            return RedisSubscription(channel, None)
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(channel)
        except RedisError as e:
            logger.warning("Redis SUBSCRIBE on %s failed: %s", channel, e)
            await pubsub.aclose()
            return RedisSubscription(channel, None)
        return RedisSubscription(channel, pubsub)


class RedisSubscription:
    """An open subscription to one Redis channel, iterated for its messages."""

    def __init__(self, channel: str, pubsub: PubSub | None) -> None:
        self.channel = channel
        self._pubsub = pubsub
        self._messages = pubsub.listen() if pubsub is not None else None

    def __aiter__(self) -> "RedisSubscription":
        return self

    async def __anext__(self) -> str:
        if self._messages is None:
            raise StopAsyncIteration
        try:
            async for message in self._messages:
                if message.get("type") != "message":
                    continue
                data = message.get("data")
                return data.decode("utf-8") if isinstance(data, bytes) else str(data)
        except RedisError as e:
            logger.warning("Redis subscription on %s failed: %s", self.channel, e)
        self._messages = None
        raise StopAsyncIteration

    async def aclose(self) -> None:
        """Unsubscribe and release the pubsub connection."""
        self._messages = None
        if self._pubsub is None:
            return
        pubsub, self._pubsub = self._pubsub, None
        try:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()
        except RedisError as e:
            logger.warning("Redis UNSUBSCRIBE on %s failed: %s", self.channel, e)

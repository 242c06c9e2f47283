import asyncio
import json
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import redis.asyncio as redis
from redis.exceptions import RedisError

from logging_config import get_logger
from redis_keys import RELAY_ROOM_CHANNEL

logger = get_logger(__name__)

MessageHandler = Callable[[Dict[str, Any]], Awaitable[None]]

STATUS_CONNECTED = "connected"
STATUS_DEGRADED = "degraded"
STATUS_CLOSED = "closed"


class RedisBackbone:
    """Redis pub/sub link between relay instances.

    Two separate connections are used: a subscribed connection cannot issue
    other commands. Each instance only subscribes to the channels of rooms
    that have local members, and ignores envelopes it published itself.

    If Redis cannot be reached at startup the backbone stays in local-only
    mode for the lifetime of the process. After a successful start, Redis
    errors flip ``status`` to degraded and the next successful command flips
    it back; subscriptions that failed are retried by the listener.
    """

    def __init__(self, publisher: "redis.Redis", subscriber: "redis.Redis", instance_id: Optional[str] = None,
                 poll_timeout: float = 1.0):
        self.publisher = publisher
        self.subscriber = subscriber
        self.instance_id = instance_id or uuid.uuid4().hex
        self.poll_timeout = poll_timeout
        self.status = STATUS_DEGRADED
        self._active = False
        self._pubsub = None
        self._listener: Optional[asyncio.Task] = None
        self._on_message: Optional[MessageHandler] = None
        self._channels: Set[str] = set()
        # channels whose SUBSCRIBE failed and still have local members
        self._pending: Set[str] = set()

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisBackbone":
        publisher = redis.from_url(url, decode_responses=True)
        subscriber = redis.from_url(url, decode_responses=True)
        return cls(publisher, subscriber, **kwargs)

    @property
    def connected(self) -> bool:
        return self.status == STATUS_CONNECTED

    @property
    def pending_channels(self) -> Set[str]:
        return set(self._pending)

    @staticmethod
    def channel_name(room: str) -> str:
        """Get the Redis pub/sub channel name for a room."""
        return RELAY_ROOM_CHANNEL.format(room=room)

    async def start(self, on_message: MessageHandler) -> bool:
        """Connect both clients and start listening. Returns False when running local-only."""
        self._on_message = on_message
        try:
            await asyncio.gather(self.publisher.ping(), self.subscriber.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis connection failed ({type(e).__name__}: {e}), "
                           f"running without backbone (no horizontal scaling)")
            self.status = STATUS_DEGRADED
            return False

        self._pubsub = self.subscriber.pubsub(ignore_subscribe_messages=True)
        self._active = True
        self.status = STATUS_CONNECTED
        self._listener = asyncio.create_task(self._listen())
        logger.info(f"Redis backbone connected, instance {self.instance_id}")
        return True

    async def close(self) -> None:
        if self.status == STATUS_CLOSED:
            return
        was_active = self._active
        self._active = False
        self.status = STATUS_CLOSED

        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None

        if self._pubsub is not None:
            try:
                await self._pubsub.aclose()
            except (RedisError, OSError) as e:
                logger.warning(f"Error closing Redis pub/sub: {type(e).__name__}: {e}")
            self._pubsub = None
        self._channels.clear()
        self._pending.clear()

        for client in (self.publisher, self.subscriber):
            try:
                await client.aclose()
            except (RedisError, OSError) as e:
                logger.warning(f"Error closing Redis client: {type(e).__name__}: {e}")
        if was_active:
            logger.info("Redis backbone closed")

    def _mark_degraded(self, error: Exception) -> None:
        if self.status == STATUS_CONNECTED:
            logger.warning(f"Redis backbone degraded: {type(error).__name__}: {error}")
            self.status = STATUS_DEGRADED

    def _mark_healthy(self) -> None:
        if self._active and self.status == STATUS_DEGRADED and not self._pending:
            logger.info("Redis backbone recovered")
            self.status = STATUS_CONNECTED

    async def subscribe(self, room: str) -> bool:
        """Subscribe to a room's channel. Returns False if the subscribe failed and is pending retry."""
        if not self._active:
            return False
        channel = self.channel_name(room)
        if channel in self._channels:
            return True
        try:
            await self._pubsub.subscribe(channel)
        except (RedisError, OSError) as e:
            logger.warning(f"Could not subscribe to {channel}: {type(e).__name__}: {e}")
            self._pending.add(channel)
            self._mark_degraded(e)
            return False
        self._pending.discard(channel)
        self._channels.add(channel)
        self._mark_healthy()
        logger.debug(f"Subscribed to Redis channel {channel}")
        return True

    async def unsubscribe(self, room: str) -> None:
        channel = self.channel_name(room)
        self._pending.discard(channel)
        if not self._active or channel not in self._channels:
            return
        self._channels.discard(channel)
        try:
            await self._pubsub.unsubscribe(channel)
            logger.debug(f"Unsubscribed from Redis channel {channel}")
        except (RedisError, OSError) as e:
            logger.warning(f"Could not unsubscribe from {channel}: {type(e).__name__}: {e}")
            self._mark_degraded(e)

    async def publish(self, room: str, event: str, payload: Any, sender: str) -> int:
        """Publish an event for peer instances. Returns the receiver count, 0 on failure."""
        if not self._active:
            return 0
        channel = self.channel_name(room)
        envelope = {
            "origin": self.instance_id,
            "sender": sender,
            "room": room,
            "event": event,
            "payload": payload,
        }
        try:
            data = json.dumps(envelope)
        except (TypeError, ValueError) as e:
            logger.warning(f"Payload of {event} for {room} is not JSON serializable: {e}")
            return 0
        try:
            receivers = await self.publisher.publish(channel, data)
        except (RedisError, OSError) as e:
            logger.warning(f"Publish to {channel} failed: {type(e).__name__}: {e}")
            self._mark_degraded(e)
            return 0
        self._mark_healthy()
        logger.debug(f"Published {event} to {channel}, {receivers} subscribers")
        return receivers

    async def _retry_pending(self) -> bool:
        for channel in list(self._pending):
            try:
                await self._pubsub.subscribe(channel)
            except (RedisError, OSError) as e:
                logger.debug(f"Retry of subscribe to {channel} failed: {type(e).__name__}: {e}")
                self._mark_degraded(e)
                return False
            self._pending.discard(channel)
            self._channels.add(channel)
            self._mark_healthy()
            logger.info(f"Subscribed to Redis channel {channel} after retry")
        return True

    async def _listen(self) -> None:
        """Background task: hand envelopes from peer instances to the relay."""
        logger.info("Starting Redis pub/sub listener")
        try:
            while True:
                if self._pending and not await self._retry_pending():
                    await asyncio.sleep(self.poll_timeout)
                if not self._pubsub.subscribed:
                    await asyncio.sleep(self.poll_timeout / 10)
                    continue
                try:
                    message = await self._pubsub.get_message(ignore_subscribe_messages=True,
                                                             timeout=self.poll_timeout)
                except (RedisError, OSError) as e:
                    logger.error(f"Error reading from Redis pub/sub: {type(e).__name__}: {e}")
                    self._mark_degraded(e)
                    await asyncio.sleep(self.poll_timeout)
                    continue
                self._mark_healthy()

                if message is None or message.get("type") != "message":
                    continue
                await self._handle(message)
        except asyncio.CancelledError:
            logger.info("Redis pub/sub listener cancelled")
            raise

    async def _handle(self, message: Dict[str, Any]) -> None:
        try:
            envelope = json.loads(message["data"])
        except (TypeError, ValueError) as e:
            logger.error(f"Error parsing message from Redis channel {message.get('channel')}: {e}")
            return
        if not isinstance(envelope, dict) or "room" not in envelope or "event" not in envelope:
            logger.warning(f"Ignoring malformed envelope on {message.get('channel')}")
            return
        if envelope.get("origin") == self.instance_id:
            return
        try:
            await self._on_message(envelope)
        except Exception as e:
            logger.error(f"Error delivering {envelope.get('event')} for room {envelope.get('room')}: "
                         f"{type(e).__name__}: {e}", exc_info=True)

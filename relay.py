import asyncio
from typing import Any, Dict, Optional

from backend import RedisBackbone
from logging_config import get_logger
from registry import RoomRegistry
from schemas.events import InvalidEventPayload, RelayEvent, UnknownEvent, parse_event

logger = get_logger(__name__)


class Relay:
    """Forwards room-scoped events to every other member of the room.

    Local members are reached through ``emitter`` (anything with an async
    ``emit(event, data, to=sid)``, normally the Socket.IO server); members on
    other instances are reached through the backbone. Delivery is
    fire-and-forget: failures are logged, never reported to the sender.
    """

    def __init__(self, registry: RoomRegistry, emitter, backbone: Optional[RedisBackbone] = None):
        self.registry = registry
        self.emitter = emitter
        self.backbone = backbone

    async def dispatch(self, name: str, sid: str, data: Any = None) -> Optional[RelayEvent]:
        """Handle one inbound event. Returns the parsed event, or None if it was dropped."""
        try:
            event = parse_event(name, data)
        except UnknownEvent:
            logger.debug(f"Ignoring unknown event {name!r} from {sid}")
            return None
        except InvalidEventPayload as e:
            logger.warning(f"Dropping {name} from {sid}: {e.reason}")
            return None

        if event.action == "join":
            await self.join(sid, event.room)
        elif event.action == "leave":
            await self.leave(sid, event.room)
        else:
            await self.broadcast(event.room, event.name, event.payload, sender=sid)
        return event

    async def join(self, sid: str, room: str) -> None:
        self.registry.join(sid, room)
        if self.backbone is not None:
            # no-op when already subscribed; retries a subscribe that failed earlier
            await self.backbone.subscribe(room)
            if room not in self.registry:
                # emptied by a leave/disconnect while the subscribe was in flight
                await self.backbone.unsubscribe(room)
        logger.info(f"{sid} joined {room}")

    async def leave(self, sid: str, room: str) -> None:
        emptied = self.registry.leave(sid, room)
        if emptied and self.backbone is not None:
            await self.backbone.unsubscribe(room)
        logger.info(f"{sid} left {room}")

    async def drop_connection(self, sid: str) -> None:
        """Remove a connection from all of its rooms."""
        for room in self.registry.remove_connection(sid):
            if self.backbone is not None:
                await self.backbone.unsubscribe(room)

    async def broadcast(self, room: str, event: str, payload: Any, sender: str) -> int:
        """Deliver to local members except the sender, then fan out to peers.

        Returns the number of local deliveries attempted.
        """
        delivered = await self._deliver_local(room, event, payload, exclude=sender)
        if self.backbone is not None:
            await self.backbone.publish(room, event, payload, sender)
        return delivered

    async def deliver_remote(self, envelope: Dict[str, Any]) -> int:
        """Deliver an event published by a peer instance to local members."""
        return await self._deliver_local(envelope["room"], envelope["event"], envelope.get("payload"),
                                         exclude=envelope.get("sender"))

    async def _deliver_local(self, room: str, event: str, payload: Any, exclude: Optional[str]) -> int:
        members = self.registry.members_excluding(room, exclude)
        if not members:
            logger.debug(f"No local members to receive {event} in {room}")
            return 0

        members = sorted(members)
        results = await asyncio.gather(
            *(self.emitter.emit(event, payload, to=member) for member in members),
            return_exceptions=True,
        )
        for member, result in zip(members, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to send {event} to {member} in {room}: {type(result).__name__}: {result}")
        logger.debug(f"Relayed {event} to {len(members)} local members of {room}")
        return len(members)

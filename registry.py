from typing import Dict, List, Set

from logging_config import get_logger

logger = get_logger(__name__)


class RoomRegistry:
    """In-memory room membership for the connections of this process.

    Format: {room_name: {connection_id, ...}} plus the reverse index
    {connection_id: {room_name, ...}}. A room exists only while it has members.
    Other instances keep their own registry; the backbone links them.
    """

    def __init__(self):
        self._rooms: Dict[str, Set[str]] = {}
        self._connections: Dict[str, Set[str]] = {}

    def add_connection(self, connection_id: str) -> None:
        self._connections.setdefault(connection_id, set())

    def remove_connection(self, connection_id: str) -> List[str]:
        """Forget a connection. Returns the rooms that became empty."""
        emptied = self.leave_all(connection_id)
        self._connections.pop(connection_id, None)
        return emptied

    def join(self, connection_id: str, room: str) -> bool:
        """Add a connection to a room.

        Returns True when the room was created by this join.
        """
        members = self._rooms.get(room)
        created = members is None
        if created:
            members = self._rooms[room] = set()
        if connection_id in members:
            logger.debug(f"Connection {connection_id} already in {room}")
            return False
        members.add(connection_id)
        self._connections.setdefault(connection_id, set()).add(room)
        logger.debug(f"Connection {connection_id} added to {room} (local members: {len(members)})")
        return created

    def leave(self, connection_id: str, room: str) -> bool:
        """Remove a connection from a room.

        Returns True when the room became empty and was dropped.
        """
        rooms = self._connections.get(connection_id)
        if rooms is not None:
            rooms.discard(room)

        members = self._rooms.get(room)
        if members is None or connection_id not in members:
            return False
        members.discard(connection_id)
        if members:
            return False
        del self._rooms[room]
        logger.debug(f"Room {room} has no local members left, dropped")
        return True

    def leave_all(self, connection_id: str) -> List[str]:
        emptied = []
        for room in list(self._connections.get(connection_id, ())):
            if self.leave(connection_id, room):
                emptied.append(room)
        return emptied

    def members(self, room: str) -> Set[str]:
        return set(self._rooms.get(room, ()))

    def members_excluding(self, room: str, connection_id: str) -> Set[str]:
        return {member for member in self._rooms.get(room, ()) if member != connection_id}

    def rooms_of(self, connection_id: str) -> Set[str]:
        return set(self._connections.get(connection_id, ()))

    def __contains__(self, room: str) -> bool:
        return room in self._rooms

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

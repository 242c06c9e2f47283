from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, StrictInt, StringConstraints, TypeAdapter, ValidationError

Identifier = Union[Annotated[str, StringConstraints(min_length=1)], StrictInt]
identifier_adapter = TypeAdapter(Identifier)


class RoomKind(str, Enum):
    PROJECT = "project"
    CHAT = "chat"


def room_name(kind: RoomKind, identifier: Union[str, int]) -> str:
    return f"{kind.value}:{identifier}"


class TaskEventPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    projectId: Identifier


class ChatMessagePayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    chatId: Identifier


Action = Literal["join", "leave", "broadcast"]


@dataclass(frozen=True)
class EventRule:
    action: Action
    kind: RoomKind
    # None means the payload itself is the room identifier
    payload_model: Optional[Type[BaseModel]] = None
    id_field: Optional[str] = None


EVENT_RULES: Dict[str, EventRule] = {
    "join-project": EventRule("join", RoomKind.PROJECT),
    "leave-project": EventRule("leave", RoomKind.PROJECT),
    "task-moved": EventRule("broadcast", RoomKind.PROJECT, TaskEventPayload, "projectId"),
    "task-updated": EventRule("broadcast", RoomKind.PROJECT, TaskEventPayload, "projectId"),
    "task-created": EventRule("broadcast", RoomKind.PROJECT, TaskEventPayload, "projectId"),
    "task-deleted": EventRule("broadcast", RoomKind.PROJECT, TaskEventPayload, "projectId"),
    "join-chat": EventRule("join", RoomKind.CHAT),
    "leave-chat": EventRule("leave", RoomKind.CHAT),
    "chat-message": EventRule("broadcast", RoomKind.CHAT, ChatMessagePayload, "chatId"),
}

EVENT_NAMES = tuple(EVENT_RULES)


class InvalidEventPayload(ValueError):
    def __init__(self, event: str, reason: str):
        super().__init__(f"{event}: {reason}")
        self.event = event
        self.reason = reason


class UnknownEvent(KeyError):
    pass


@dataclass(frozen=True)
class RelayEvent:
    """A validated inbound event, resolved to its target room.

    ``payload`` is the object the client sent, untouched.
    """

    name: str
    action: Action
    room: str
    payload: Any = None


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ())) or "payload"
    return f"{location}: {error.get('msg')}"


def parse_event(name: str, data: Any) -> RelayEvent:
    """Validate ``data`` for event ``name`` and resolve the room it targets.

    Raises UnknownEvent for names outside the vocabulary and
    InvalidEventPayload when the payload cannot be scoped to a room.
    """
    rule = EVENT_RULES.get(name)
    if rule is None:
        raise UnknownEvent(name)

    if rule.payload_model is None:
        try:
            identifier = identifier_adapter.validate_python(data)
        except ValidationError as exc:
            raise InvalidEventPayload(name, f"expected a {rule.kind.value} id, {_first_error(exc)}") from exc
        return RelayEvent(name=name, action=rule.action, room=room_name(rule.kind, identifier))

    if not isinstance(data, dict):
        raise InvalidEventPayload(name, f"expected an object with {rule.id_field}, got {type(data).__name__}")
    try:
        model = rule.payload_model.model_validate(data)
    except ValidationError as exc:
        raise InvalidEventPayload(name, _first_error(exc)) from exc
    identifier = getattr(model, rule.id_field)
    return RelayEvent(name=name, action=rule.action, room=room_name(rule.kind, identifier), payload=data)

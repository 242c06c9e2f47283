"""Tests for inbound event parsing and room resolution."""

import pytest

from schemas.events import EVENT_NAMES, InvalidEventPayload, RoomKind, UnknownEvent, parse_event, room_name


class TestMembershipEvents:
    @pytest.mark.parametrize(
        "name,data,room,action",
        [
            ("join-project", "abc123", "project:abc123", "join"),
            ("join-project", 42, "project:42", "join"),
            ("leave-project", "abc123", "project:abc123", "leave"),
            ("join-chat", "room1", "chat:room1", "join"),
            ("leave-chat", "room1", "chat:room1", "leave"),
        ],
    )
    def test_payload_is_the_identifier(self, name, data, room, action):
        event = parse_event(name, data)
        assert event.room == room
        assert event.action == action
        assert event.payload is None

    @pytest.mark.parametrize("data", [None, "", True, 1.5, {"projectId": "p1"}, ["p1"]])
    def test_rejects_non_identifier(self, data):
        with pytest.raises(InvalidEventPayload) as exc_info:
            parse_event("join-project", data)
        assert exc_info.value.event == "join-project"

    def test_identifier_kept_verbatim(self):
        assert parse_event("join-project", " p1").room == "project: p1"
        assert parse_event("task-moved", {"projectId": "p1 "}).room == "project:p1 "


class TestBroadcastEvents:
    def test_task_event_resolves_project_room(self):
        payload = {"projectId": "abc123", "taskId": "t1", "toColumn": "done"}
        event = parse_event("task-moved", payload)
        assert event.action == "broadcast"
        assert event.room == "project:abc123"

    def test_payload_is_forwarded_untouched(self):
        payload = {"projectId": "abc123", "task": {"id": "t1", "tags": ["x"]}, "extra": None}
        event = parse_event("task-updated", payload)
        assert event.payload is payload

    def test_chat_message_resolves_chat_room(self):
        event = parse_event("chat-message", {"chatId": "room1", "text": "hi"})
        assert event.room == "chat:room1"

    @pytest.mark.parametrize("name", ["task-moved", "task-updated", "task-created", "task-deleted"])
    def test_task_event_without_project_id(self, name):
        with pytest.raises(InvalidEventPayload):
            parse_event(name, {"taskId": "t1"})

    def test_chat_message_without_chat_id(self):
        with pytest.raises(InvalidEventPayload):
            parse_event("chat-message", {"text": "hi", "projectId": "p1"})

    def test_non_object_payload(self):
        with pytest.raises(InvalidEventPayload) as exc_info:
            parse_event("task-created", "abc123")
        assert "projectId" in exc_info.value.reason


def test_unknown_event():
    with pytest.raises(UnknownEvent):
        parse_event("drop-tables", {})


def test_vocabulary():
    assert set(EVENT_NAMES) == {
        "join-project", "leave-project",
        "task-moved", "task-updated", "task-created", "task-deleted",
        "join-chat", "leave-chat", "chat-message",
    }


def test_room_name():
    assert room_name(RoomKind.PROJECT, "p1") == "project:p1"
    assert room_name(RoomKind.CHAT, 7) == "chat:7"

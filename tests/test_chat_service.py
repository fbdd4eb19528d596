"""
tests/test_chat_service.py — Chat Resolver & Messaging Tests
=============================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from skillswap.database.models import Chat, ChatUnread
from skillswap.errors import NotFoundError, PermissionDenied, ValidationFailure
from skillswap.services.chat_service import (
    chat_key,
    get_or_create_chat,
    get_user_chats,
    list_messages,
    mark_messages_as_read,
    send_message,
)
from skillswap.services.notification_service import list_notifications
from skillswap.services.request_service import create_request


@pytest.fixture
def request_id(db_engine, users) -> int:
    return create_request(db_engine, "alice", "Learn CSS", "Grid vs flexbox").id


def _unread(engine, chat_id: str, user_id: str) -> int:
    with engine.connect() as conn:
        return conn.scalar(
            select(ChatUnread.count).where(
                ChatUnread.chat_id == chat_id, ChatUnread.user_id == user_id,
            )
        )


class TestChatKey:
    def test_order_independent(self):
        assert chat_key(1, "a", "b") == chat_key(1, "b", "a")

    def test_differs_per_request(self):
        assert chat_key(1, "a", "b") != chat_key(2, "a", "b")

    def test_hex_digest(self):
        assert len(chat_key(1, "a", "b")) == 64


class TestGetOrCreateChat:
    def test_same_chat_for_either_order(self, db_engine, request_id):
        first = get_or_create_chat(db_engine, request_id, "alice", "bob")
        second = get_or_create_chat(db_engine, request_id, "bob", "alice")
        assert first == second

        with db_engine.connect() as conn:
            assert conn.scalar(select(func.count()).select_from(Chat)) == 1

    def test_both_participants_notified_once(self, db_engine, request_id):
        get_or_create_chat(db_engine, request_id, "alice", "bob")
        get_or_create_chat(db_engine, request_id, "bob", "alice")

        for uid in ("alice", "bob"):
            chats = [n for n in list_notifications(db_engine, uid) if n.type == "new_chat"]
            assert len(chats) == 1
            assert chats[0].message == 'Chat started for "Learn CSS"'

    def test_unknown_request_gets_placeholder_title(self, db_engine, users):
        chat_id = get_or_create_chat(db_engine, 999, "alice", "bob")
        chat = get_user_chats(db_engine, "alice")[0]
        assert chat["id"] == chat_id
        assert chat["request_title"] == "Untitled Request"

        notes = list_notifications(db_engine, "bob")
        assert notes[0].message == "New chat started"

    def test_losing_a_creation_race_reuses_the_winner(self, db_engine, request_id, monkeypatch):
        winner = get_or_create_chat(db_engine, request_id, "alice", "bob")

        # The late caller misses the row on its first look and hits the
        # primary key on insert instead.
        real_get = Session.get

        def stale_get(self, entity, ident, **kw):
            if entity is Chat:
                return None
            return real_get(self, entity, ident, **kw)

        monkeypatch.setattr(Session, "get", stale_get)
        assert get_or_create_chat(db_engine, request_id, "bob", "alice") == winner
        monkeypatch.undo()

        with db_engine.connect() as conn:
            assert conn.scalar(select(func.count()).select_from(Chat)) == 1
        for uid in ("alice", "bob"):
            chats = [n for n in list_notifications(db_engine, uid) if n.type == "new_chat"]
            assert len(chats) == 1

    def test_unread_rows_start_at_zero(self, db_engine, request_id):
        chat_id = get_or_create_chat(db_engine, request_id, "alice", "bob")
        assert _unread(db_engine, chat_id, "alice") == 0
        assert _unread(db_engine, chat_id, "bob") == 0

    def test_same_user_rejected(self, db_engine, request_id):
        with pytest.raises(ValidationFailure):
            get_or_create_chat(db_engine, request_id, "alice", "alice")

    def test_missing_participant_rejected(self, db_engine, request_id):
        with pytest.raises(ValidationFailure):
            get_or_create_chat(db_engine, request_id, "alice", "")


class TestSendMessage:
    def test_message_updates_chat_and_notifies(self, db_engine, request_id):
        chat_id = get_or_create_chat(db_engine, request_id, "alice", "bob")
        message = send_message(db_engine, chat_id, "bob", "  Happy to help!  ")
        assert message.text == "Happy to help!"

        chat = get_user_chats(db_engine, "alice")[0]
        assert chat["last_message"] == "Happy to help!"
        assert chat["last_message_sender_id"] == "bob"
        assert chat["unread_count"] == 1
        assert chat["other_user"]["id"] == "bob"
        assert chat["other_user"]["display_name"] == "Bob"

        assert _unread(db_engine, chat_id, "bob") == 0
        latest = list_notifications(db_engine, "alice")[0]
        assert latest.type == "new_message"
        assert latest.message == 'Bob sent you a message: "Happy to help!"'
        assert latest.chat_id == chat_id

    def test_long_message_preview_is_truncated(self, db_engine, request_id):
        chat_id = get_or_create_chat(db_engine, request_id, "alice", "bob")
        send_message(db_engine, chat_id, "alice", "a" * 31)

        latest = list_notifications(db_engine, "bob")[0]
        assert latest.message == f'Alice sent you a message: "{"a" * 27}..."'

    def test_thirty_char_message_is_not_truncated(self, db_engine, request_id):
        chat_id = get_or_create_chat(db_engine, request_id, "alice", "bob")
        send_message(db_engine, chat_id, "alice", "b" * 30)
        assert list_notifications(db_engine, "bob")[0].message.endswith(f'"{"b" * 30}"')

    def test_whitespace_only_is_ignored(self, db_engine, request_id):
        chat_id = get_or_create_chat(db_engine, request_id, "alice", "bob")
        assert send_message(db_engine, chat_id, "alice", "   \n") is None
        assert list_messages(db_engine, chat_id, "alice") == []
        assert _unread(db_engine, chat_id, "bob") == 0

    def test_non_participant_rejected(self, db_engine, request_id):
        chat_id = get_or_create_chat(db_engine, request_id, "alice", "bob")
        with pytest.raises(PermissionDenied):
            send_message(db_engine, chat_id, "carol", "hi")

    def test_unknown_chat(self, db_engine, users):
        with pytest.raises(NotFoundError):
            send_message(db_engine, "nope", "alice", "hi")

    def test_unread_accumulates(self, db_engine, request_id):
        chat_id = get_or_create_chat(db_engine, request_id, "alice", "bob")
        for text in ("one", "two", "three"):
            send_message(db_engine, chat_id, "alice", text)
        assert _unread(db_engine, chat_id, "bob") == 3
        assert [m.text for m in list_messages(db_engine, chat_id, "bob")] == ["one", "two", "three"]


class TestReadState:
    def test_mark_read_resets_counter(self, db_engine, request_id):
        chat_id = get_or_create_chat(db_engine, request_id, "alice", "bob")
        send_message(db_engine, chat_id, "alice", "one")
        send_message(db_engine, chat_id, "alice", "two")
        send_message(db_engine, chat_id, "bob", "reply")

        assert mark_messages_as_read(db_engine, chat_id, "bob") == 2
        assert _unread(db_engine, chat_id, "bob") == 0
        assert _unread(db_engine, chat_id, "alice") == 1

        flags = {m.text: m.read for m in list_messages(db_engine, chat_id, "bob")}
        assert flags == {"one": True, "two": True, "reply": False}

    def test_mark_read_twice(self, db_engine, request_id):
        chat_id = get_or_create_chat(db_engine, request_id, "alice", "bob")
        send_message(db_engine, chat_id, "alice", "one")
        mark_messages_as_read(db_engine, chat_id, "bob")
        assert mark_messages_as_read(db_engine, chat_id, "bob") == 0

    def test_non_participant_cannot_read(self, db_engine, request_id):
        chat_id = get_or_create_chat(db_engine, request_id, "alice", "bob")
        with pytest.raises(PermissionDenied):
            mark_messages_as_read(db_engine, chat_id, "carol")
        with pytest.raises(PermissionDenied):
            list_messages(db_engine, chat_id, "carol")

    def test_user_chats_only_lists_own(self, db_engine, request_id):
        get_or_create_chat(db_engine, request_id, "alice", "bob")
        assert get_user_chats(db_engine, "carol") == []
        assert len(get_user_chats(db_engine, "bob")) == 1

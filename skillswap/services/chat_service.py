"""
skillswap.services.chat_service — Chat / Thread Resolver
=========================================================

There is at most one chat per (request, unordered participant pair).  The
chat id is a digest of the request id and the sorted participant ids, so
two concurrent ``get_or_create_chat`` calls compute the same primary key
and the loser of the insert race simply reuses the winner's row.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from skillswap.config import SkillSwapConfig
from skillswap.constants import UNTITLED_REQUEST, UNKNOWN_USER_NAME, preview
from skillswap.database.engine import get_session
from skillswap.database.models import (
    Chat,
    ChatUnread,
    HelpRequest,
    Message,
    NotificationType,
    User,
)
from skillswap.errors import NotFoundError, PermissionDenied, ValidationFailure
from skillswap.services.notification_service import notify
from skillswap.services.outbox import dispatch_pending

logger = logging.getLogger(__name__)


def chat_key(request_id: int, user_a: str, user_b: str) -> str:
    """Deterministic chat id for a request and an unordered user pair."""
    low, high = sorted((user_a, user_b))
    raw = f"{request_id}:{low}:{high}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _load_chat(session: Session, chat_id: str) -> Chat:
    chat = session.get(Chat, chat_id)
    if chat is None:
        raise NotFoundError(f"Chat {chat_id} not found.")
    return chat


def get_or_create_chat(
    engine: Engine,
    request_id: int,
    user_a: str,
    user_b: str,
    cfg: SkillSwapConfig | None = None,
) -> str:
    """Return the chat id for the pair, creating the chat on first use.

    Creating a chat notifies both participants.  A missing request is
    tolerated: the chat is titled ``Untitled Request``.
    """
    if not user_a or not user_b:
        raise ValidationFailure("Both participants are required.")
    if user_a == user_b:
        raise ValidationFailure("A chat needs two different participants.")

    chat_id = chat_key(request_id, user_a, user_b)
    with get_session(engine) as session:
        if session.get(Chat, chat_id) is not None:
            return chat_id

        request = session.get(HelpRequest, request_id)
        if request is None:
            logger.warning("Chat for unknown request %s — using placeholder title", request_id)
            title = UNTITLED_REQUEST
        else:
            title = request.title or UNTITLED_REQUEST

        participants = sorted((user_a, user_b))
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(Chat(
                    id=chat_id,
                    request_id=request_id,
                    request_title=title,
                    participants=participants,
                ))
                session.add_all(
                    ChatUnread(chat_id=chat_id, user_id=uid, count=0) for uid in participants
                )
                session.flush()
        except IntegrityError:
            logger.debug("Chat %s created concurrently — reusing", chat_id[:8])
            return chat_id

        message = f'Chat started for "{title}"' if request is not None else "New chat started"
        for uid in participants:
            notify(
                session, uid, NotificationType.NEW_CHAT, message,
                chat_id=chat_id, request_id=request_id,
            )

    logger.info("Chat created: %s for request %s", chat_id[:8], request_id)
    dispatch_pending(engine, cfg)
    return chat_id


def send_message(
    engine: Engine,
    chat_id: str,
    sender_id: str,
    text: str,
    cfg: SkillSwapConfig | None = None,
) -> Message | None:
    """Append a message and notify every other participant.

    Whitespace-only text is ignored and returns None.

    Raises
    ------
    NotFoundError
        If the chat does not exist.
    PermissionDenied
        If *sender_id* is not a participant.
    """
    text = (text or "").strip()
    if not text:
        return None

    with get_session(engine) as session:
        chat = _load_chat(session, chat_id)
        participants = list(chat.participants or [])
        if sender_id not in participants:
            raise PermissionDenied("Only chat participants can send messages.")

        now = datetime.now(UTC)
        message = Message(chat_id=chat_id, sender_id=sender_id, text=text, read=False, timestamp=now)
        session.add(message)

        chat.last_message_text = text
        chat.last_message_sender_id = sender_id
        chat.last_message_at = now
        chat.updated_at = now

        others = [uid for uid in participants if uid != sender_id]
        session.execute(
            update(ChatUnread)
            .where(ChatUnread.chat_id == chat_id, ChatUnread.user_id.in_(others))
            .values(count=ChatUnread.count + 1)
        )

        sender = session.get(User, sender_id)
        sender_name = sender.display_name if sender is not None else UNKNOWN_USER_NAME
        for uid in others:
            notify(
                session, uid, NotificationType.NEW_MESSAGE,
                f'{sender_name} sent you a message: "{preview(text)}"',
                chat_id=chat_id, request_id=chat.request_id,
            )
        session.flush()

    dispatch_pending(engine, cfg)
    return message


def mark_messages_as_read(engine: Engine, chat_id: str, user_id: str) -> int:
    """Zero *user_id*'s unread counter and flag others' messages read.

    Returns the number of messages flagged.
    """
    with get_session(engine) as session:
        chat = _load_chat(session, chat_id)
        if user_id not in (chat.participants or []):
            raise PermissionDenied("Only chat participants can read this chat.")

        session.execute(
            update(ChatUnread)
            .where(ChatUnread.chat_id == chat_id, ChatUnread.user_id == user_id)
            .values(count=0)
        )
        result = session.execute(
            update(Message)
            .where(
                Message.chat_id == chat_id,
                Message.sender_id != user_id,
                Message.read.is_(False),
            )
            .values(read=True)
        )
        return result.rowcount or 0


def get_user_chats(engine: Engine, user_id: str) -> list[dict]:
    """Chats *user_id* participates in, most recently active first."""
    with Session(engine) as session:
        rows = session.execute(
            select(Chat, ChatUnread.count)
            .join(ChatUnread, ChatUnread.chat_id == Chat.id)
            .where(ChatUnread.user_id == user_id)
            .order_by(Chat.updated_at.desc(), Chat.id)
        ).all()

        other_ids = {
            uid for chat, _ in rows for uid in (chat.participants or []) if uid != user_id
        }
        others = {
            u.id: u for u in session.scalars(select(User).where(User.id.in_(other_ids))).all()
        } if other_ids else {}

        chats: list[dict] = []
        for chat, unread in rows:
            other_id = next((uid for uid in chat.participants or [] if uid != user_id), None)
            other = others.get(other_id)
            chats.append({
                "id": chat.id,
                "request_id": chat.request_id,
                "request_title": chat.request_title,
                "participants": list(chat.participants or []),
                "other_user": {
                    "id": other_id,
                    "display_name": other.display_name if other else UNKNOWN_USER_NAME,
                    "photo_url": other.photo_url if other else "",
                },
                "last_message": chat.last_message_text,
                "last_message_sender_id": chat.last_message_sender_id,
                "last_message_at": chat.last_message_at,
                "unread_count": unread,
            })
        return chats


def list_messages(engine: Engine, chat_id: str, user_id: str) -> list[Message]:
    """Messages in chronological order.  Participants only."""
    with Session(engine) as session:
        chat = _load_chat(session, chat_id)
        if user_id not in (chat.participants or []):
            raise PermissionDenied("Only chat participants can read this chat.")
        return list(session.scalars(
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.timestamp, Message.id)
        ).all())

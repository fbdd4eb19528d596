"""
skillswap.services.notification_service — Notification Fan-out & Inbox
=======================================================================

Writers never insert a :class:`Notification` directly.  They call
:func:`notify` inside their own transaction, which records an outbox event;
:func:`deliver_notification` turns that event into the inbox row once the
primary write has committed.

Recipients who switched ``notifications_enabled`` off are skipped at
delivery time.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select, update
from sqlalchemy.orm import Session

from skillswap.database.engine import get_session
from skillswap.database.models import (
    Notification,
    NotificationType,
    OutboxEvent,
    OutboxKind,
    User,
)
from skillswap.errors import NotFoundError, ValidationFailure
from skillswap.services.outbox import enqueue

logger = logging.getLogger(__name__)


def notify(
    session: Session,
    recipient_id: str,
    type_: NotificationType,
    message: str,
    *,
    chat_id: str | None = None,
    request_id: int | None = None,
    offerer_id: str | None = None,
) -> OutboxEvent:
    """Queue one notification for *recipient_id* in the caller's transaction."""
    if not recipient_id:
        raise ValidationFailure("Notification recipient is required.")
    if not message:
        raise ValidationFailure("Notification message is required.")

    return enqueue(session, OutboxKind.NOTIFY, {
        "recipient_id": recipient_id,
        "type": NotificationType(type_).value,
        "message": message,
        "chat_id": chat_id,
        "request_id": request_id,
        "offerer_id": offerer_id,
    })


def deliver_notification(session: Session, payload: dict) -> Notification | None:
    """Outbox handler: write the inbox row for a queued notification."""
    recipient = session.get(User, payload["recipient_id"])
    if recipient is None:
        logger.warning(
            "Dropping %s notification for unknown user %s",
            payload.get("type"), payload["recipient_id"],
        )
        return None
    if not recipient.notifications_enabled:
        logger.debug("User %s has notifications disabled", recipient.id)
        return None

    notification = Notification(
        recipient_id=recipient.id,
        type=payload["type"],
        message=payload["message"],
        is_read=False,
        chat_id=payload.get("chat_id"),
        request_id=payload.get("request_id"),
        offerer_id=payload.get("offerer_id"),
    )
    session.add(notification)
    session.flush()
    session.refresh(notification)
    return notification


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------
def list_notifications(
    engine: Engine,
    user_id: str,
    *,
    unread_only: bool = False,
    limit: int = 50,
) -> list[Notification]:
    """Newest first."""
    with Session(engine) as session:
        stmt = select(Notification).where(Notification.recipient_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(
            Notification.created_at.desc(), Notification.id.desc()
        ).limit(limit)
        return list(session.scalars(stmt).all())


def unread_count(engine: Engine, user_id: str) -> int:
    with Session(engine) as session:
        return session.scalar(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
        ) or 0


def mark_read(engine: Engine, notification_id: int, user_id: str) -> Notification:
    """Mark one notification read.  Only its recipient may do so."""
    with get_session(engine) as session:
        notification = session.get(Notification, notification_id)
        if notification is None or notification.recipient_id != user_id:
            raise NotFoundError(f"Notification {notification_id} not found.")
        notification.is_read = True
        return notification


def mark_all_read(engine: Engine, user_id: str) -> int:
    """Mark every unread notification of *user_id* read.  Returns the count."""
    with get_session(engine) as session:
        result = session.execute(
            update(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True)
        )
        return result.rowcount or 0

"""
skillswap.services.outbox — Side-Effect Outbox
===============================================

Notifications and badge awards are best-effort side effects of a primary
write.  Services record them here inside the primary transaction with
:func:`enqueue`; after commit they call :func:`dispatch_pending`, which
delivers each event in its own transaction.

A failed delivery is logged, its ``attempts`` counter bumped and its error
stored; the primary change is never rolled back.  Events that reach
``outbox_max_attempts`` stay in the table for inspection and are no longer
retried.  Running ``python -m skillswap dispatch-outbox`` retries the rest.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from skillswap.config import SkillSwapConfig
from skillswap.database.engine import get_session
from skillswap.database.models import OutboxEvent, OutboxKind

logger = logging.getLogger(__name__)


def enqueue(session: Session, kind: OutboxKind, payload: dict) -> OutboxEvent:
    """Record a side effect in the caller's transaction."""
    event = OutboxEvent(kind=kind.value, payload=payload, attempts=0)
    session.add(event)
    return event


def _handlers() -> dict[str, Callable[[Session, dict], object]]:
    from skillswap.services import badge_service, notification_service  # noqa: E402 — avoid circular

    return {
        OutboxKind.NOTIFY: notification_service.deliver_notification,
        OutboxKind.BADGE_CHECK: badge_service.run_badge_check,
        OutboxKind.BADGE_GRANT: badge_service.deliver_badge_grant,
    }


def _record_failure(engine: Engine, event_id: int, exc: Exception) -> None:
    with get_session(engine) as session:
        event = session.get(OutboxEvent, event_id)
        if event is not None:
            event.attempts += 1
            event.last_error = f"{type(exc).__name__}: {exc}"[:1000]


def _deliver_one(engine: Engine, event_id: int) -> bool:
    """Deliver a single event.  Returns True if it was delivered now."""
    try:
        with get_session(engine) as session:
            event = session.get(
                OutboxEvent, event_id, with_for_update={"skip_locked": True}
            )
            if event is None or event.delivered_at is not None:
                return False

            handler = _handlers().get(event.kind)
            if handler is None:
                raise ValueError(f"Unknown outbox kind: {event.kind}")

            handler(session, dict(event.payload))
            event.attempts += 1
            event.delivered_at = datetime.now(UTC)
        return True
    except Exception as exc:
        logger.exception("Outbox delivery failed for event %d", event_id)
        _record_failure(engine, event_id, exc)
        return False


def dispatch_pending(engine: Engine, cfg: SkillSwapConfig | None = None) -> int:
    """Deliver pending outbox events, oldest first.

    Returns the number of events delivered by this call.
    """
    cfg = cfg or SkillSwapConfig()
    with Session(engine) as session:
        pending_ids = session.scalars(
            select(OutboxEvent.id)
            .where(
                OutboxEvent.delivered_at.is_(None),
                OutboxEvent.attempts < cfg.outbox_max_attempts,
            )
            .order_by(OutboxEvent.id)
            .limit(cfg.outbox_batch_size)
        ).all()

    delivered = 0
    for event_id in pending_ids:
        if _deliver_one(engine, event_id):
            delivered += 1

    if pending_ids:
        logger.debug("Outbox: delivered %d of %d pending", delivered, len(pending_ids))
    return delivered

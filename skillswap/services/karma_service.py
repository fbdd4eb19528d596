"""
skillswap.services.karma_service — Karma Ledger
================================================

Karma only goes up.  Every change is a single ``UPDATE … SET karma = karma
+ :delta`` so concurrent awards never lose an increment, and every change
is mirrored by a :class:`KarmaAward` ledger row.

Awards that carry a ``source_key`` (for example ``request:42``) are
idempotent: the unique key on the ledger turns a repeat into a no-op.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from skillswap.database.engine import get_session
from skillswap.database.models import KarmaAward, User
from skillswap.errors import NotFoundError, ValidationFailure

logger = logging.getLogger(__name__)


def apply_karma(
    session: Session,
    user_id: str,
    delta: int,
    *,
    reason: str = "",
    source_key: str | None = None,
) -> bool:
    """Add *delta* karma inside the caller's transaction.

    Returns False when *source_key* was already applied.

    Raises
    ------
    ValidationFailure
        If *delta* is not a positive integer.
    NotFoundError
        If the user does not exist.
    """
    if isinstance(delta, bool) or not isinstance(delta, int) or delta <= 0:
        raise ValidationFailure(f"Karma delta must be a positive integer, got {delta!r}.")

    if session.scalar(select(User.id).where(User.id == user_id)) is None:
        raise NotFoundError(f"User {user_id} not found.")

    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(KarmaAward(
                user_id=user_id,
                delta=delta,
                reason=reason[:200],
                source_key=source_key,
            ))
            session.flush()
            session.execute(
                update(User)
                .where(User.id == user_id)
                .values(karma=User.karma + delta)
            )
    except IntegrityError:
        logger.info("Karma award %s already applied — skipping", source_key)
        return False

    logger.info("Karma +%d → %s (%s)", delta, user_id, reason or "no reason")
    return True


def award_karma(
    engine: Engine,
    user_id: str,
    delta: int,
    *,
    reason: str = "",
    source_key: str | None = None,
) -> bool:
    """Standalone version of :func:`apply_karma` with its own transaction."""
    with get_session(engine) as session:
        return apply_karma(
            session, user_id, delta, reason=reason, source_key=source_key
        )


def get_karma(engine: Engine, user_id: str) -> int:
    with Session(engine) as session:
        karma = session.scalar(select(User.karma).where(User.id == user_id))
    if karma is None:
        raise NotFoundError(f"User {user_id} not found.")
    return karma


def karma_history(engine: Engine, user_id: str, *, limit: int = 50) -> list[KarmaAward]:
    """Most recent ledger entries for *user_id*."""
    with Session(engine) as session:
        return list(session.scalars(
            select(KarmaAward)
            .where(KarmaAward.user_id == user_id)
            .order_by(KarmaAward.created_at.desc(), KarmaAward.id.desc())
            .limit(limit)
        ).all())

"""
skillswap.services.testimonial_service — Testimonials
======================================================

Testimonials stay hidden until their receiver approves them.  Only
approved testimonials count toward the ``testimonial-5`` badge.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from skillswap.config import SkillSwapConfig
from skillswap.database.engine import get_session
from skillswap.database.models import Testimonial, User
from skillswap.errors import NotFoundError, PermissionDenied, ValidationFailure
from skillswap.services.badge_service import queue_badge_check
from skillswap.services.outbox import dispatch_pending

logger = logging.getLogger(__name__)


def submit_testimonial(engine: Engine, sender_id: str, receiver_id: str, text: str) -> Testimonial:
    text = (text or "").strip()
    if not text:
        raise ValidationFailure("Testimonial text is required.")
    if sender_id == receiver_id:
        raise ValidationFailure("You cannot write a testimonial for yourself.")

    with get_session(engine) as session:
        for uid in (sender_id, receiver_id):
            if session.get(User, uid) is None:
                raise NotFoundError(f"User {uid} not found.")
        testimonial = Testimonial(
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=text,
            is_approved=False,
        )
        session.add(testimonial)
        session.flush()
        session.refresh(testimonial)

    logger.info("Testimonial %d: %s → %s", testimonial.id, sender_id, receiver_id)
    return testimonial


def _load_for_receiver(session: Session, testimonial_id: int, receiver_id: str) -> Testimonial:
    testimonial = session.get(Testimonial, testimonial_id)
    if testimonial is None:
        raise NotFoundError(f"Testimonial {testimonial_id} not found.")
    if testimonial.receiver_id != receiver_id:
        raise PermissionDenied("Only the receiver can manage this testimonial.")
    return testimonial


def approve_testimonial(
    engine: Engine,
    testimonial_id: int,
    receiver_id: str,
    cfg: SkillSwapConfig | None = None,
) -> Testimonial:
    with get_session(engine) as session:
        testimonial = _load_for_receiver(session, testimonial_id, receiver_id)
        if testimonial.is_approved:
            return testimonial
        testimonial.is_approved = True
        queue_badge_check(session, receiver_id)

    dispatch_pending(engine, cfg)
    return testimonial


def delete_testimonial(engine: Engine, testimonial_id: int, receiver_id: str) -> None:
    with get_session(engine) as session:
        testimonial = _load_for_receiver(session, testimonial_id, receiver_id)
        session.delete(testimonial)


def list_testimonials(
    engine: Engine,
    receiver_id: str,
    *,
    approved_only: bool = True,
) -> list[Testimonial]:
    """Newest first."""
    with Session(engine) as session:
        stmt = select(Testimonial).where(Testimonial.receiver_id == receiver_id)
        if approved_only:
            stmt = stmt.where(Testimonial.is_approved.is_(True))
        return list(session.scalars(
            stmt.order_by(Testimonial.created_at.desc(), Testimonial.id.desc())
        ).all())

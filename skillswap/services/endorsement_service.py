"""
skillswap.services.endorsement_service — Skill Endorsements
============================================================

Each endorser counts once per skill: the ``(skill_id, endorser_id)``
primary key makes a repeat endorsement a no-op.  When a skill reaches the
guru threshold (five endorsements by default) the owner receives the
per-skill guru badge exactly once, on the endorsement that crosses it.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from skillswap.config import SkillSwapConfig
from skillswap.database.engine import get_session
from skillswap.database.models import OutboxKind, Skill, SkillEndorsement, User
from skillswap.errors import NotFoundError, ValidationFailure
from skillswap.services.badge_service import queue_badge_check
from skillswap.services.outbox import dispatch_pending, enqueue

logger = logging.getLogger(__name__)


def _endorsement_count(session: Session, skill_id: int) -> int:
    return session.scalar(
        select(func.count())
        .select_from(SkillEndorsement)
        .where(SkillEndorsement.skill_id == skill_id)
    ) or 0


def _find_skill(session: Session, owner_id: str, skill_name: str) -> Skill:
    skill = session.scalar(
        select(Skill).where(Skill.user_id == owner_id, Skill.name == skill_name)
    )
    if skill is None:
        raise NotFoundError(f"Skill {skill_name!r} not found for user {owner_id}.")
    return skill


def endorse_skill(
    engine: Engine,
    owner_id: str,
    endorser_id: str,
    skill_name: str,
    cfg: SkillSwapConfig | None = None,
) -> int:
    """Record *endorser_id*'s endorsement of *owner_id*'s skill.

    Returns the skill's endorsement count afterwards.  Endorsing twice
    leaves the count unchanged.

    Raises
    ------
    ValidationFailure
        If a user tries to endorse their own skill.
    NotFoundError
        If the owner, the endorser or the skill does not exist.
    """
    cfg = cfg or SkillSwapConfig()
    if owner_id == endorser_id:
        raise ValidationFailure("You cannot endorse your own skill.")

    with get_session(engine) as session:
        if session.get(User, owner_id) is None:
            raise NotFoundError(f"User {owner_id} not found.")
        if session.get(User, endorser_id) is None:
            raise NotFoundError(f"User {endorser_id} not found.")
        skill = _find_skill(session, owner_id, skill_name)

        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(SkillEndorsement(skill_id=skill.id, endorser_id=endorser_id))
                session.flush()
        except IntegrityError:
            logger.debug("%s already endorsed %s/%s", endorser_id, owner_id, skill_name)
            return _endorsement_count(session, skill.id)

        count = _endorsement_count(session, skill.id)
        if count == cfg.guru_endorsement_threshold:
            enqueue(session, OutboxKind.BADGE_GRANT, {
                "user_id": owner_id,
                "skill_name": skill.name,
                "threshold": cfg.guru_endorsement_threshold,
            })
        queue_badge_check(session, owner_id)

    logger.info("Endorsement: %s → %s/%s (%d)", endorser_id, owner_id, skill_name, count)
    dispatch_pending(engine, cfg)
    return count


def list_endorsers(engine: Engine, owner_id: str, skill_name: str) -> list[str]:
    """User ids that endorsed the skill, oldest endorsement first."""
    with Session(engine) as session:
        skill = _find_skill(session, owner_id, skill_name)
        return list(session.scalars(
            select(SkillEndorsement.endorser_id)
            .where(SkillEndorsement.skill_id == skill.id)
            .order_by(SkillEndorsement.created_at, SkillEndorsement.endorser_id)
        ).all())

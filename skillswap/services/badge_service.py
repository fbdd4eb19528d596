"""
skillswap.services.badge_service — Badge Awarding
==================================================

Builds a :class:`~skillswap.engine.badges.UserStats` snapshot from the
database, asks the evaluator which catalog badges are newly earned and
records them.

Each award is its own SAVEPOINT.  The ``(user_id, badge_id)`` primary key
makes a concurrent duplicate award fail with ``IntegrityError``, which is
treated as "already held".  Any other database error for one badge is
logged and the loop moves on to the next badge.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy import Engine, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from skillswap.config import SkillSwapConfig
from skillswap.database.engine import get_session
from skillswap.database.models import (
    HelpRequest,
    HelpResponse,
    OutboxKind,
    RequestStatus,
    ResponseStatus,
    Skill,
    SkillEndorsement,
    Testimonial,
    User,
    UserBadge,
)
from skillswap.engine.badges import (
    Badge,
    SkillStat,
    UserStats,
    eligible_badges,
    get_badge,
    guru_badge,
)
from skillswap.errors import NotFoundError
from skillswap.services.outbox import dispatch_pending, enqueue

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stats snapshot
# ---------------------------------------------------------------------------
def get_earned_badge_ids(session: Session, user_id: str) -> set[str]:
    rows = session.scalars(
        select(UserBadge.badge_id).where(UserBadge.user_id == user_id)
    ).all()
    return set(rows)


def _help_streak(completed_days: list[date]) -> int:
    """Length of the run of consecutive days ending on the latest day."""
    days = sorted(set(completed_days), reverse=True)
    if not days:
        return 0
    streak = 1
    for previous, current in zip(days, days[1:]):
        if previous - current != timedelta(days=1):
            break
        streak += 1
    return streak


def build_user_stats(session: Session, user_id: str) -> UserStats:
    """Assemble the counters the badge predicates read.

    Raises
    ------
    NotFoundError
        If the user does not exist.
    """
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found.")

    requests_created = session.scalar(
        select(func.count()).select_from(HelpRequest).where(HelpRequest.user_id == user_id)
    ) or 0
    help_offered = session.scalar(
        select(func.count()).select_from(HelpResponse).where(HelpResponse.helper_id == user_id)
    ) or 0
    unique_helped = session.scalar(
        select(func.count(func.distinct(HelpRequest.user_id))).where(
            HelpRequest.accepted_helper_id == user_id,
            HelpRequest.status == RequestStatus.COMPLETED.value,
            HelpRequest.user_id != user_id,
        )
    ) or 0
    testimonial_count = session.scalar(
        select(func.count()).select_from(Testimonial).where(
            Testimonial.receiver_id == user_id,
            Testimonial.is_approved.is_(True),
        )
    ) or 0

    skill_rows = session.execute(
        select(Skill.name, Skill.category, func.count(SkillEndorsement.endorser_id))
        .outerjoin(SkillEndorsement, SkillEndorsement.skill_id == Skill.id)
        .where(Skill.user_id == user_id)
        .group_by(Skill.id, Skill.name, Skill.category)
        .order_by(Skill.id)
    ).all()
    skills = tuple(SkillStat(name, category, count) for name, category, count in skill_rows)

    completed_at = session.scalars(
        select(HelpResponse.completed_at).where(
            HelpResponse.helper_id == user_id,
            HelpResponse.status == ResponseStatus.COMPLETED.value,
            HelpResponse.completed_at.is_not(None),
        )
    ).all()

    return UserStats(
        unique_helped_users=unique_helped,
        requests_created=requests_created,
        help_offered=help_offered,
        skills=skills,
        testimonial_count=testimonial_count,
        highest_leaderboard_rank=user.highest_leaderboard_rank,
        help_streak=_help_streak([ts.date() for ts in completed_at]),
        join_date=user.created_at,
        has_photo=bool(user.photo_url),
        bio_length=len(user.bio or ""),
        earned_badge_ids=frozenset(get_earned_badge_ids(session, user_id)),
    )


# ---------------------------------------------------------------------------
# Awarding
# ---------------------------------------------------------------------------
def _award_one(session: Session, user_id: str, badge: Badge) -> UserBadge | None:
    """Insert one badge row under a SAVEPOINT.  None if already held."""
    row = UserBadge(
        user_id=user_id,
        badge_id=badge.id,
        name=badge.name,
        description=badge.description,
        category=badge.category.value,
        tier=badge.tier.value,
        icon=badge.icon,
    )
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(row)
            session.flush()
            session.refresh(row)
    except IntegrityError:
        logger.debug("Badge %s already held by %s", badge.id, user_id)
        return None
    return row


def award_badges(session: Session, user_id: str, stats: UserStats) -> list[UserBadge]:
    """Award every catalog badge *stats* newly qualifies for.

    A failure on one badge is logged and does not stop the others.
    """
    awarded: list[UserBadge] = []
    for badge in eligible_badges(stats):
        try:
            row = _award_one(session, user_id, badge)
        except SQLAlchemyError:
            logger.exception("Failed to award badge %s to %s", badge.id, user_id)
            continue
        if row is not None:
            awarded.append(row)
            logger.info("Badge awarded: %s → %s", badge.id, user_id)
    return awarded


def check_and_award_all(
    engine: Engine,
    user_id: str,
    stats: UserStats | None = None,
) -> list[UserBadge]:
    """Evaluate the full catalog for *user_id* and persist new badges.

    When *stats* is None the snapshot is built from the database.  Running
    this twice in a row awards nothing the second time.
    """
    with get_session(engine) as session:
        if stats is None:
            stats = build_user_stats(session, user_id)
        elif session.get(User, user_id) is None:
            raise NotFoundError(f"User {user_id} not found.")
        return award_badges(session, user_id, stats)


def award_guru_badge(
    session: Session,
    user_id: str,
    skill_name: str,
    threshold: int = 5,
) -> UserBadge | None:
    return _award_one(session, user_id, guru_badge(skill_name, threshold))


def grant_badge(engine: Engine, *, user_id: str, badge_id: str) -> tuple[bool, str]:
    """Hand out a catalog badge by id, bypassing its predicate.

    This is the only way MANUAL badges such as ``problem-solver`` are
    earned.  Returns (success, message).
    """
    badge = get_badge(badge_id)
    if badge is None:
        return False, "Badge not found."

    with get_session(engine) as session:
        if session.get(User, user_id) is None:
            raise NotFoundError(f"User {user_id} not found.")
        if session.get(UserBadge, (user_id, badge_id)) is not None:
            return False, "User has already earned this badge."
        if _award_one(session, user_id, badge) is None:
            return False, "User has already earned this badge."

    logger.info("Badge granted: %s → %s", badge_id, user_id)
    return True, f"Badge '{badge.name}' granted."


def list_user_badges(engine: Engine, user_id: str) -> list[UserBadge]:
    with Session(engine) as session:
        return list(session.scalars(
            select(UserBadge)
            .where(UserBadge.user_id == user_id)
            .order_by(UserBadge.awarded_at, UserBadge.badge_id)
        ).all())


# ---------------------------------------------------------------------------
# Outbox hooks
# ---------------------------------------------------------------------------
def queue_badge_check(session: Session, user_id: str) -> None:
    """Ask the outbox to re-evaluate *user_id* after the current commit."""
    enqueue(session, OutboxKind.BADGE_CHECK, {"user_id": user_id})


def run_badge_check(session: Session, payload: dict) -> list[UserBadge]:
    """Outbox handler for BADGE_CHECK events."""
    user_id = payload["user_id"]
    if session.get(User, user_id) is None:
        logger.warning("Badge check skipped: unknown user %s", user_id)
        return []
    return award_badges(session, user_id, build_user_stats(session, user_id))


def deliver_badge_grant(session: Session, payload: dict) -> UserBadge | None:
    """Outbox handler for BADGE_GRANT events (per-skill guru badges)."""
    return award_guru_badge(
        session, payload["user_id"], payload["skill_name"], payload.get("threshold", 5),
    )


def refresh_badges(
    engine: Engine,
    user_id: str,
    cfg: SkillSwapConfig | None = None,
) -> list[UserBadge]:
    """Queue and immediately dispatch a badge check for *user_id*."""
    with get_session(engine) as session:
        if session.get(User, user_id) is None:
            raise NotFoundError(f"User {user_id} not found.")
        queue_badge_check(session, user_id)
    dispatch_pending(engine, cfg)
    return list_user_badges(engine, user_id)

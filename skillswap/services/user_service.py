"""
skillswap.services.user_service — Profiles, Skills, Links & Leaderboard
========================================================================

User rows mirror the identity provider's profile.  The first sign-in
creates the row with community defaults; later sign-ins only fill fields
that are still empty, so profile edits made here are never overwritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session

from skillswap.config import SkillSwapConfig
from skillswap.constants import (
    ALLOWED_PROFILE_FIELDS,
    DEFAULT_BIO,
    DEFAULT_DISPLAY_NAME,
    LINK_TYPES,
)
from skillswap.database.engine import get_session
from skillswap.database.models import (
    Proficiency,
    Skill,
    SkillCategory,
    User,
    UserBadge,
    UserLink,
)
from skillswap.engine.badges import badge_karma
from skillswap.errors import NotFoundError, ValidationFailure
from skillswap.services.badge_service import queue_badge_check
from skillswap.services.outbox import dispatch_pending

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Identity:
    """Profile claims taken from a verified identity token."""
    uid: str
    display_name: str = ""
    email: str = ""
    photo_url: str = ""


def _require_user(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found.")
    return user


def create_or_update_user(
    engine: Engine,
    identity: Identity,
    cfg: SkillSwapConfig | None = None,
) -> User:
    """Insert the user on first sign-in, else fill any missing fields."""
    if not identity.uid:
        raise ValidationFailure("Invalid user identity.")

    with get_session(engine) as session:
        user = session.get(User, identity.uid)
        if user is None:
            user = User(
                id=identity.uid,
                display_name=identity.display_name or DEFAULT_DISPLAY_NAME,
                email=identity.email or "",
                photo_url=identity.photo_url or "",
                bio=DEFAULT_BIO,
                karma=0,
                notifications_enabled=True,
                profile_visible=True,
            )
            session.add(user)
            session.flush()
            queue_badge_check(session, user.id)
            logger.info("New user %s (%s)", user.id, user.display_name)
        else:
            if not user.display_name:
                user.display_name = identity.display_name or DEFAULT_DISPLAY_NAME
            if not user.email and identity.email:
                user.email = identity.email
            if not user.photo_url and identity.photo_url:
                user.photo_url = identity.photo_url
            if user.bio is None:
                user.bio = DEFAULT_BIO
        session.flush()
        session.refresh(user)

    dispatch_pending(engine, cfg)
    return user


def get_user(engine: Engine, user_id: str) -> User:
    with Session(engine) as session:
        return _require_user(session, user_id)


def update_profile(
    engine: Engine,
    user_id: str,
    *,
    cfg: SkillSwapConfig | None = None,
    **fields,
) -> User:
    """Update allowed profile fields.  Unknown fields are rejected."""
    unknown = set(fields) - ALLOWED_PROFILE_FIELDS
    if unknown:
        raise ValidationFailure(f"Unknown profile fields: {', '.join(sorted(unknown))}")
    if "display_name" in fields and not (fields["display_name"] or "").strip():
        raise ValidationFailure("Display name cannot be empty.")

    with get_session(engine) as session:
        user = _require_user(session, user_id)
        for key, value in fields.items():
            setattr(user, key, value.strip() if isinstance(value, str) else value)
        queue_badge_check(session, user_id)

    dispatch_pending(engine, cfg)
    return user


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------
def add_skill(
    engine: Engine,
    user_id: str,
    name: str,
    category: str = SkillCategory.PROGRAMMING.value,
    proficiency: str = Proficiency.INTERMEDIATE.value,
    cfg: SkillSwapConfig | None = None,
) -> Skill:
    name = (name or "").strip()
    if not name:
        raise ValidationFailure("Skill name is required.")
    if category not in set(SkillCategory):
        raise ValidationFailure(f"Unknown skill category: {category!r}")
    if proficiency not in set(Proficiency):
        raise ValidationFailure(f"Unknown proficiency: {proficiency!r}")

    with get_session(engine) as session:
        _require_user(session, user_id)
        existing = session.scalar(
            select(Skill.id).where(
                Skill.user_id == user_id,
                func.lower(Skill.name) == name.lower(),
            )
        )
        if existing is not None:
            raise ValidationFailure(f"You already listed {name!r} as a skill.")

        skill = Skill(user_id=user_id, name=name, category=category, proficiency=proficiency)
        session.add(skill)
        session.flush()
        queue_badge_check(session, user_id)

    dispatch_pending(engine, cfg)
    return skill


def remove_skill(engine: Engine, user_id: str, name: str) -> None:
    """Delete a skill together with its endorsements."""
    with get_session(engine) as session:
        skill = session.scalar(
            select(Skill).where(Skill.user_id == user_id, Skill.name == name)
        )
        if skill is None:
            raise NotFoundError(f"Skill {name!r} not found.")
        session.delete(skill)
    logger.info("Skill %r removed from %s", name, user_id)


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------
def add_link(engine: Engine, user_id: str, url: str, *, type_: str = "website", title: str = "") -> UserLink:
    url = (url or "").strip()
    if not url.startswith(("http://", "https://")):
        raise ValidationFailure("Links must start with http:// or https://")
    if type_ not in LINK_TYPES:
        raise ValidationFailure(f"Unknown link type: {type_!r}")

    with get_session(engine) as session:
        _require_user(session, user_id)
        link = UserLink(user_id=user_id, url=url, type=type_, title=(title or "").strip())
        session.add(link)
        session.flush()
        return link


def remove_link(engine: Engine, user_id: str, link_id: int) -> None:
    with get_session(engine) as session:
        link = session.get(UserLink, link_id)
        if link is None or link.user_id != user_id:
            raise NotFoundError(f"Link {link_id} not found.")
        session.delete(link)


# ---------------------------------------------------------------------------
# Profile read model
# ---------------------------------------------------------------------------
def get_profile(engine: Engine, user_id: str) -> dict:
    """Everything the profile page shows, in one dict."""
    with Session(engine) as session:
        user = _require_user(session, user_id)

        skills = []
        for skill in user.skills:
            endorsers = [e.endorser_id for e in skill.endorsements]
            skills.append({
                "name": skill.name,
                "category": skill.category,
                "proficiency": skill.proficiency,
                "endorsement_count": len(endorsers),
                "endorsers": endorsers,
            })

        badges = session.scalars(
            select(UserBadge)
            .where(UserBadge.user_id == user_id)
            .order_by(UserBadge.awarded_at, UserBadge.badge_id)
        ).all()

        return {
            "id": user.id,
            "display_name": user.display_name,
            "email": user.email,
            "photo_url": user.photo_url,
            "bio": user.bio,
            "karma": user.karma,
            "highest_leaderboard_rank": user.highest_leaderboard_rank,
            "notifications_enabled": user.notifications_enabled,
            "profile_visible": user.profile_visible,
            "created_at": user.created_at,
            "skills": skills,
            "badges": [
                {
                    "id": b.badge_id,
                    "name": b.name,
                    "description": b.description,
                    "category": b.category,
                    "tier": b.tier,
                    "icon": b.icon,
                    "awarded_at": b.awarded_at,
                }
                for b in badges
            ],
            "badge_karma": badge_karma(b.badge_id for b in badges),
            "links": [
                {"id": link.id, "type": link.type, "url": link.url, "title": link.title}
                for link in user.links
            ],
        }


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------
def get_leaderboard(
    engine: Engine,
    limit: int | None = None,
    cfg: SkillSwapConfig | None = None,
) -> list[dict]:
    """Top users by karma (ties broken by id).

    Each listed user's best-ever rank is stored so the leaderboard badge
    stays earned after they drop out of the top ranks.
    """
    cfg = cfg or SkillSwapConfig()
    limit = limit or cfg.leaderboard_size

    improved = 0
    with get_session(engine) as session:
        users = session.scalars(
            select(User)
            .where(User.profile_visible.is_(True))
            .order_by(User.karma.desc(), User.id)
            .limit(limit)
        ).all()

        entries: list[dict] = []
        for rank, user in enumerate(users, start=1):
            if user.highest_leaderboard_rank is None or rank < user.highest_leaderboard_rank:
                user.highest_leaderboard_rank = rank
                queue_badge_check(session, user.id)
                improved += 1
            entries.append({
                "rank": rank,
                "id": user.id,
                "display_name": user.display_name,
                "photo_url": user.photo_url,
                "karma": user.karma,
            })

    if improved:
        dispatch_pending(engine, cfg)
    return entries


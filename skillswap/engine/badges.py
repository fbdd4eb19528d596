"""
skillswap.engine.badges — Badge Catalog & Eligibility Evaluator
================================================================

The catalog is a declarative table: every badge id maps to exactly one
:class:`PredicateKind` plus a small config dict.  A single dispatcher
(:data:`PREDICATE_HANDLERS`) evaluates it against a :class:`UserStats`
snapshot.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class BadgeCategory(enum.StrEnum):
    PARTICIPATION = "participation"
    HELPER = "helper"
    SKILL = "skill"
    COMMUNITY = "community"
    SPECIAL = "special"


class BadgeTier(enum.StrEnum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class PredicateKind(enum.StrEnum):
    """What condition earns a badge."""
    REQUESTS_CREATED = "requests_created"
    HELP_OFFERED = "help_offered"
    PROFILE_COMPLETE = "profile_complete"
    UNIQUE_HELPED = "unique_helped"
    SKILL_ENDORSEMENTS = "skill_endorsements"
    ENDORSED_CATEGORIES = "endorsed_categories"
    TESTIMONIALS = "testimonials"
    LEADERBOARD_RANK = "leaderboard_rank"
    HELP_STREAK = "help_streak"
    JOINED_BEFORE = "joined_before"
    MANUAL = "manual"


# ---------------------------------------------------------------------------
# Stats snapshot — passed to every predicate
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SkillStat:
    name: str
    category: str
    endorsement_count: int = 0


@dataclass(frozen=True, slots=True)
class UserStats:
    """Read-only snapshot of a user's aggregate counters.

    Parameters
    ----------
    unique_helped_users : Distinct request owners this user completed help for.
    requests_created : Help requests posted by this user.
    help_offered : Offers submitted by this user.
    skills : Declared skills with endorsement counts.
    testimonial_count : Approved testimonials received.
    highest_leaderboard_rank : Best rank ever reached (1 = top), or None.
    help_streak : Consecutive days ending on the latest completed help.
    join_date : Account creation time.
    has_photo, bio_length : Profile completeness inputs.
    earned_badge_ids : Badges the user already holds.
    """

    unique_helped_users: int = 0
    requests_created: int = 0
    help_offered: int = 0
    skills: tuple[SkillStat, ...] = ()
    testimonial_count: int = 0
    highest_leaderboard_rank: int | None = None
    help_streak: int = 0
    join_date: datetime | date | None = None
    has_photo: bool = False
    bio_length: int = 0
    earned_badge_ids: frozenset[str] = field(default_factory=frozenset)


# ---------------------------------------------------------------------------
# Badge catalog entry
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Badge:
    id: str
    name: str
    description: str
    category: BadgeCategory
    tier: BadgeTier
    icon: str
    points: int
    predicate: PredicateKind = PredicateKind.MANUAL
    config: dict = field(default_factory=dict, hash=False, compare=False)


# ---------------------------------------------------------------------------
# Predicate handlers — pure functions (config, stats) → bool
# ---------------------------------------------------------------------------
def _check_requests_created(config: dict, stats: UserStats) -> bool:
    return stats.requests_created >= config.get("min", 1)


def _check_help_offered(config: dict, stats: UserStats) -> bool:
    return stats.help_offered >= config.get("min", 1)


def _check_profile_complete(config: dict, stats: UserStats) -> bool:
    """Photo, a bio longer than ``bio_over`` chars, and ``min_skills`` skills."""
    return (
        stats.has_photo
        and stats.bio_length > config.get("bio_over", 30)
        and len(stats.skills) >= config.get("min_skills", 3)
    )


def _check_unique_helped(config: dict, stats: UserStats) -> bool:
    value = config.get("value")
    if value is None:
        return False
    return stats.unique_helped_users >= value


def _check_skill_endorsements(config: dict, stats: UserStats) -> bool:
    """Some single skill has at least ``value`` endorsements."""
    value = config.get("value")
    if value is None:
        return False
    return any(s.endorsement_count >= value for s in stats.skills)


def _check_endorsed_categories(config: dict, stats: UserStats) -> bool:
    """Endorsements present in at least ``value`` distinct skill categories."""
    value = config.get("value")
    if value is None:
        return False
    categories = {s.category for s in stats.skills if s.endorsement_count > 0}
    return len(categories) >= value


def _check_testimonials(config: dict, stats: UserStats) -> bool:
    value = config.get("value")
    if value is None:
        return False
    return stats.testimonial_count >= value


def _check_leaderboard_rank(config: dict, stats: UserStats) -> bool:
    """Best-ever rank is ``value`` or better (lower)."""
    value = config.get("value")
    if value is None or stats.highest_leaderboard_rank is None:
        return False
    return 0 < stats.highest_leaderboard_rank <= value


def _check_help_streak(config: dict, stats: UserStats) -> bool:
    value = config.get("value")
    if value is None:
        return False
    return stats.help_streak >= value


def _check_joined_before(config: dict, stats: UserStats) -> bool:
    cutoff = config.get("before")
    if cutoff is None or stats.join_date is None:
        return False
    joined = stats.join_date
    if isinstance(joined, datetime):
        joined = joined.date()
    return joined < cutoff


PREDICATE_HANDLERS: dict[str, Callable[[dict, UserStats], bool]] = {
    PredicateKind.REQUESTS_CREATED: _check_requests_created,
    PredicateKind.HELP_OFFERED: _check_help_offered,
    PredicateKind.PROFILE_COMPLETE: _check_profile_complete,
    PredicateKind.UNIQUE_HELPED: _check_unique_helped,
    PredicateKind.SKILL_ENDORSEMENTS: _check_skill_endorsements,
    PredicateKind.ENDORSED_CATEGORIES: _check_endorsed_categories,
    PredicateKind.TESTIMONIALS: _check_testimonials,
    PredicateKind.LEADERBOARD_RANK: _check_leaderboard_rank,
    PredicateKind.HELP_STREAK: _check_help_streak,
    PredicateKind.JOINED_BEFORE: _check_joined_before,
    # PredicateKind.MANUAL intentionally omitted — never auto-awarded
}


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
BADGES: tuple[Badge, ...] = (
    # Participation
    Badge("first-post", "First Steps", "Created your first help request",
          BadgeCategory.PARTICIPATION, BadgeTier.BRONZE, "Trophy", 5,
          PredicateKind.REQUESTS_CREATED, {"min": 1}),
    Badge("first-help", "Helping Hand", "Offered help for the first time",
          BadgeCategory.PARTICIPATION, BadgeTier.BRONZE, "Heart", 10,
          PredicateKind.HELP_OFFERED, {"min": 1}),
    Badge("complete-profile", "Identity Established",
          "Completed your profile with bio, skills, and photo",
          BadgeCategory.PARTICIPATION, BadgeTier.BRONZE, "CheckCircle", 5,
          PredicateKind.PROFILE_COMPLETE, {"bio_over": 30, "min_skills": 3}),
    # Helper
    Badge("helper-5", "Regular Helper", "Helped 5 different people",
          BadgeCategory.HELPER, BadgeTier.BRONZE, "Award", 15,
          PredicateKind.UNIQUE_HELPED, {"value": 5}),
    Badge("helper-25", "Mentor", "Helped 25 different people",
          BadgeCategory.HELPER, BadgeTier.SILVER, "Award", 30,
          PredicateKind.UNIQUE_HELPED, {"value": 25}),
    Badge("helper-100", "Guardian Angel", "Helped 100 different people",
          BadgeCategory.HELPER, BadgeTier.GOLD, "Award", 50,
          PredicateKind.UNIQUE_HELPED, {"value": 100}),
    # Skill
    Badge("skill-endorsed-5", "Recognized Expert", "Received 5 endorsements for a skill",
          BadgeCategory.SKILL, BadgeTier.SILVER, "Star", 20,
          PredicateKind.SKILL_ENDORSEMENTS, {"value": 5}),
    Badge("skill-endorsed-20", "Subject Matter Expert",
          "Received 20 endorsements for a skill",
          BadgeCategory.SKILL, BadgeTier.GOLD, "Star", 40,
          PredicateKind.SKILL_ENDORSEMENTS, {"value": 20}),
    Badge("multi-skilled", "Renaissance Person",
          "Received endorsements in 5 different skill categories",
          BadgeCategory.SKILL, BadgeTier.GOLD, "Zap", 35,
          PredicateKind.ENDORSED_CATEGORIES, {"value": 5}),
    # Community
    Badge("testimonial-5", "Well Regarded", "Received 5 testimonials from other users",
          BadgeCategory.COMMUNITY, BadgeTier.SILVER, "ThumbsUp", 25,
          PredicateKind.TESTIMONIALS, {"value": 5}),
    Badge("top-10-leaderboard", "Community Leader", "Reached the top 10 on the leaderboard",
          BadgeCategory.COMMUNITY, BadgeTier.GOLD, "Users", 50,
          PredicateKind.LEADERBOARD_RANK, {"value": 10}),
    Badge("streak-7", "Consistency King", "Helped someone 7 days in a row",
          BadgeCategory.COMMUNITY, BadgeTier.SILVER, "Flame", 30,
          PredicateKind.HELP_STREAK, {"value": 7}),
    # Special
    Badge("early-adopter", "Early Adopter", "Joined during the platform's beta phase",
          BadgeCategory.SPECIAL, BadgeTier.GOLD, "Zap", 20,
          PredicateKind.JOINED_BEFORE, {"before": date(2023, 1, 1)}),
    Badge("problem-solver", "Problem Solver", "Helped with a particularly difficult request",
          BadgeCategory.SPECIAL, BadgeTier.SILVER, "Target", 25,
          PredicateKind.MANUAL),
)

_BADGES_BY_ID: dict[str, Badge] = {b.id: b for b in BADGES}


def get_badge(badge_id: str) -> Badge | None:
    return _BADGES_BY_ID.get(badge_id)


def badges_by_category(category: str) -> list[Badge]:
    return [b for b in BADGES if b.category == category]


def badges_by_tier(tier: str) -> list[Badge]:
    return [b for b in BADGES if b.tier == tier]


def badge_karma(badge_ids: Iterable[str]) -> int:
    """Sum of catalog points for *badge_ids*; ids outside the catalog count 0."""
    total = 0
    for badge_id in badge_ids:
        badge = _BADGES_BY_ID.get(badge_id)
        if badge is not None:
            total += badge.points
    return total


def guru_badge(skill_name: str, threshold: int = 5) -> Badge:
    """The per-skill badge handed out when a skill reaches *threshold* endorsements."""
    return Badge(
        id=f"{skill_name.strip().lower()}-guru",
        name=f"{skill_name} Guru",
        description=f"Received {threshold} endorsements for {skill_name}",
        category=BadgeCategory.SKILL,
        tier=BadgeTier.SILVER,
        icon="Sparkles",
        points=0,
        predicate=PredicateKind.MANUAL,
    )


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------
def check_eligibility(stats: UserStats, badge_id: str) -> bool:
    """True iff the user lacks *badge_id* and its predicate holds.

    Badges outside the catalog and MANUAL badges always evaluate False.
    """
    if badge_id in stats.earned_badge_ids:
        return False

    badge = _BADGES_BY_ID.get(badge_id)
    if badge is None:
        return False

    handler = PREDICATE_HANDLERS.get(badge.predicate)
    if handler is None:
        return False

    return bool(handler(badge.config, stats))


def eligible_badges(stats: UserStats) -> list[Badge]:
    """Every catalog badge the user newly qualifies for, in catalog order."""
    newly_eligible: list[Badge] = []
    for badge in BADGES:
        if check_eligibility(stats, badge.id):
            newly_eligible.append(badge)
            logger.debug("Badge eligible: %s", badge.id)
    return newly_eligible

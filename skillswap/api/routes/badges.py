"""
skillswap.api.routes.badges — Badge catalog & earned badges
============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from skillswap.api.deps import get_current_user_id, get_engine
from skillswap.database.models import UserBadge
from skillswap.engine.badges import (
    BADGES,
    Badge,
    badge_karma,
    badges_by_category,
    badges_by_tier,
)
from skillswap.services import badge_service

router = APIRouter(tags=["badges"])


def _catalog_dict(b: Badge) -> dict:
    return {
        "id": b.id,
        "name": b.name,
        "description": b.description,
        "category": b.category.value,
        "tier": b.tier.value,
        "icon": b.icon,
        "points": b.points,
    }


def _earned_dict(b: UserBadge) -> dict:
    return {
        "id": b.badge_id,
        "name": b.name,
        "description": b.description,
        "category": b.category,
        "tier": b.tier,
        "icon": b.icon,
        "awarded_at": b.awarded_at.isoformat() if b.awarded_at else None,
    }


@router.get("/badges")
def catalog(
    category: str | None = Query(None),
    tier: str | None = Query(None),
):
    """The static badge catalog, optionally filtered."""
    badges = list(BADGES)
    if category:
        badges = badges_by_category(category)
    if tier:
        badges = [b for b in badges if b in badges_by_tier(tier)]
    return {"badges": [_catalog_dict(b) for b in badges]}


@router.get("/users/{user_id}/badges")
def user_badges(user_id: str, engine: Engine = Depends(get_engine)):
    earned = badge_service.list_user_badges(engine, user_id)
    return {
        "badges": [_earned_dict(b) for b in earned],
        "badge_karma": badge_karma(b.badge_id for b in earned),
    }


@router.post("/users/me/badges/check")
def check_my_badges(
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    """Re-evaluate the catalog for the caller and return newly earned badges."""
    awarded = badge_service.check_and_award_all(engine, user_id)
    return {"awarded": [_earned_dict(b) for b in awarded]}

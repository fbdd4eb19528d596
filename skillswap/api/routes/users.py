"""
skillswap.api.routes.users — Profiles, skills, links, endorsements, leaderboard
================================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import Engine

from skillswap.api.deps import (
    get_config,
    get_current_identity,
    get_current_user_id,
    get_engine,
)
from skillswap.api.routes.requests import _request_dict
from skillswap.config import SkillSwapConfig
from skillswap.database.models import Proficiency, SkillCategory, User
from skillswap.services import (
    endorsement_service,
    karma_service,
    request_service,
    user_service,
)
from skillswap.services.user_service import Identity

router = APIRouter(tags=["users"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ProfileUpdate(BaseModel):
    display_name: str | None = None
    bio: str | None = None
    photo_url: str | None = None
    notifications_enabled: bool | None = None
    profile_visible: bool | None = None


class SkillCreate(BaseModel):
    name: str
    category: SkillCategory = SkillCategory.PROGRAMMING
    proficiency: Proficiency = Proficiency.INTERMEDIATE


class LinkCreate(BaseModel):
    url: str
    type: str = "website"
    title: str = ""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _user_dict(u: User) -> dict:
    return {
        "id": u.id,
        "display_name": u.display_name,
        "email": u.email,
        "photo_url": u.photo_url,
        "bio": u.bio,
        "karma": u.karma,
        "highest_leaderboard_rank": u.highest_leaderboard_rank,
        "notifications_enabled": u.notifications_enabled,
        "profile_visible": u.profile_visible,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------
@router.post("/users/me")
def sync_me(
    identity: Identity = Depends(get_current_identity),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    """Create or refresh the caller's row from their token claims."""
    return _user_dict(user_service.create_or_update_user(engine, identity, cfg))


@router.get("/users/me")
def get_me(
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    return user_service.get_profile(engine, user_id)


@router.patch("/users/me")
def update_me(
    body: ProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    fields = body.model_dump(exclude_none=True)
    return _user_dict(user_service.update_profile(engine, user_id, cfg=cfg, **fields))


@router.get("/users/me/karma")
def my_karma_history(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    awards = karma_service.karma_history(engine, user_id, limit=limit)
    return {
        "karma": karma_service.get_karma(engine, user_id),
        "history": [
            {
                "delta": a.delta,
                "reason": a.reason,
                "created_at": a.created_at.isoformat() if a.created_at else None,
            }
            for a in awards
        ],
    }


@router.post("/users/me/skills", status_code=201)
def add_skill(
    body: SkillCreate,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    skill = user_service.add_skill(
        engine, user_id, body.name, body.category.value, body.proficiency.value, cfg
    )
    return {"name": skill.name, "category": skill.category, "proficiency": skill.proficiency}


@router.delete("/users/me/skills/{skill_name}", status_code=204)
def remove_skill(
    skill_name: str,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    user_service.remove_skill(engine, user_id, skill_name)


@router.post("/users/me/links", status_code=201)
def add_link(
    body: LinkCreate,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    link = user_service.add_link(engine, user_id, body.url, type_=body.type, title=body.title)
    return {"id": link.id, "type": link.type, "url": link.url, "title": link.title}


@router.delete("/users/me/links/{link_id}", status_code=204)
def remove_link(
    link_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    user_service.remove_link(engine, user_id, link_id)


# ---------------------------------------------------------------------------
# Other users
# ---------------------------------------------------------------------------
@router.get("/users/{user_id}")
def get_profile(user_id: str, engine: Engine = Depends(get_engine)):
    profile = user_service.get_profile(engine, user_id)
    profile.pop("email", None)
    return profile


@router.get("/users/{user_id}/stats")
def profile_stats(user_id: str, engine: Engine = Depends(get_engine)):
    return request_service.profile_stats(engine, user_id)


@router.get("/users/{user_id}/activity")
def activity(
    user_id: str,
    limit: int = Query(10, ge=1, le=100),
    engine: Engine = Depends(get_engine),
):
    """Requests the user posted and requests they helped on, newest first."""
    entries = request_service.activity_history(engine, user_id, limit)
    return {
        "activity": [
            {"type": e["type"], "request": _request_dict(e["request"])} for e in entries
        ]
    }


@router.post("/users/{owner_id}/skills/{skill_name}/endorse")
def endorse(
    owner_id: str,
    skill_name: str,
    endorser_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    count = endorsement_service.endorse_skill(engine, owner_id, endorser_id, skill_name, cfg)
    return {"skill": skill_name, "endorsement_count": count}


@router.get("/users/{owner_id}/skills/{skill_name}/endorsers")
def endorsers(owner_id: str, skill_name: str, engine: Engine = Depends(get_engine)):
    return {"endorsers": endorsement_service.list_endorsers(engine, owner_id, skill_name)}


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------
@router.get("/leaderboard")
def leaderboard(
    limit: int | None = Query(None, ge=1, le=100),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    return {"entries": user_service.get_leaderboard(engine, limit, cfg)}


"""
skillswap.api.routes.requests — Help requests & offers
=======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from skillswap.api.deps import get_config, get_current_user_id, get_engine
from skillswap.config import SkillSwapConfig
from skillswap.database.models import HelpRequest, HelpResponse
from skillswap.services import request_service

router = APIRouter(prefix="/requests", tags=["requests"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class RequestCreate(BaseModel):
    title: str
    description: str
    offer_in_return: str = ""
    tags: list[str] = Field(default_factory=list)
    urgency: str = "medium"
    estimated_time: str = "30min"


class OfferCreate(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _iso(value):
    return value.isoformat() if value else None


def _request_dict(r: HelpRequest) -> dict:
    return {
        "id": r.id,
        "user_id": r.user_id,
        "title": r.title,
        "description": r.description,
        "offer_in_return": r.offer_in_return,
        "tags": list(r.tags or []),
        "urgency": r.urgency,
        "estimated_time": r.estimated_time,
        "status": r.status,
        "accepted_helper_id": r.accepted_helper_id,
        "created_at": _iso(r.created_at),
        "completed_at": _iso(r.completed_at),
    }


def _response_dict(r: HelpResponse) -> dict:
    return {
        "id": r.id,
        "request_id": r.request_id,
        "helper_id": r.helper_id,
        "message": r.message,
        "status": r.status,
        "karma_awarded": r.karma_awarded,
        "created_at": _iso(r.created_at),
        "accepted_at": _iso(r.accepted_at),
        "rejected_at": _iso(r.rejected_at),
        "completed_at": _iso(r.completed_at),
    }


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
@router.get("")
def list_requests(
    status: str | None = Query(None),
    tag: str | None = Query(None),
    owner_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    engine: Engine = Depends(get_engine),
):
    requests = request_service.list_requests(
        engine, status=status, tag=tag, owner_id=owner_id, limit=limit
    )
    return {"requests": [_request_dict(r) for r in requests]}


@router.post("", status_code=201)
def create_request(
    body: RequestCreate,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    request = request_service.create_request(
        engine,
        user_id,
        body.title,
        body.description,
        offer_in_return=body.offer_in_return,
        tags=body.tags,
        urgency=body.urgency,
        estimated_time=body.estimated_time,
        cfg=cfg,
    )
    return _request_dict(request)


@router.get("/contributions")
def my_contributions(
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    """Offers the caller has made, with the request each belongs to."""
    rows = request_service.list_contributions(engine, user_id)
    return {
        "contributions": [
            {**_response_dict(resp), "request": _request_dict(req)} for resp, req in rows
        ]
    }


@router.get("/{request_id}")
def get_request(request_id: int, engine: Engine = Depends(get_engine)):
    return _request_dict(request_service.get_request(engine, request_id))


@router.post("/{request_id}/complete")
def complete_request(
    request_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    request, awarded = request_service.complete_request(engine, request_id, user_id, cfg)
    return {
        **_request_dict(request),
        "karma_awarded": cfg.karma_per_help if awarded else 0,
    }


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------
@router.get("/{request_id}/offers")
def list_offers(request_id: int, engine: Engine = Depends(get_engine)):
    return {"offers": [_response_dict(r) for r in request_service.list_responses(engine, request_id)]}


@router.post("/{request_id}/offers", status_code=201)
def submit_offer(
    request_id: int,
    body: OfferCreate,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    return _response_dict(request_service.submit_offer(engine, request_id, user_id, body.message, cfg))


@router.post("/{request_id}/offers/{response_id}/accept")
def accept_offer(
    request_id: int,
    response_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    return _response_dict(request_service.accept_offer(engine, request_id, response_id, user_id, cfg))


@router.post("/{request_id}/offers/{response_id}/reject")
def reject_offer(
    request_id: int,
    response_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    return _response_dict(request_service.reject_offer(engine, request_id, response_id, user_id, cfg))

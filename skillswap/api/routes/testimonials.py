"""
skillswap.api.routes.testimonials — Testimonials
=================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import Engine

from skillswap.api.deps import get_config, get_current_user_id, get_engine
from skillswap.config import SkillSwapConfig
from skillswap.database.models import Testimonial
from skillswap.services import testimonial_service

router = APIRouter(tags=["testimonials"])


class TestimonialCreate(BaseModel):
    receiver_id: str
    text: str


def _testimonial_dict(t: Testimonial) -> dict:
    return {
        "id": t.id,
        "sender_id": t.sender_id,
        "receiver_id": t.receiver_id,
        "text": t.text,
        "is_approved": t.is_approved,
        "created_at": t.created_at.isoformat() if t.created_at else None,
    }


@router.post("/testimonials", status_code=201)
def submit(
    body: TestimonialCreate,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    testimonial = testimonial_service.submit_testimonial(engine, user_id, body.receiver_id, body.text)
    return _testimonial_dict(testimonial)


@router.get("/users/me/testimonials")
def my_testimonials(
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    """All testimonials written about the caller, pending ones included."""
    items = testimonial_service.list_testimonials(engine, user_id, approved_only=False)
    return {"testimonials": [_testimonial_dict(t) for t in items]}


@router.get("/users/{user_id}/testimonials")
def approved_testimonials(user_id: str, engine: Engine = Depends(get_engine)):
    items = testimonial_service.list_testimonials(engine, user_id)
    return {"testimonials": [_testimonial_dict(t) for t in items]}


@router.post("/testimonials/{testimonial_id}/approve")
def approve(
    testimonial_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    return _testimonial_dict(testimonial_service.approve_testimonial(engine, testimonial_id, user_id, cfg))


@router.delete("/testimonials/{testimonial_id}", status_code=204)
def delete(
    testimonial_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    testimonial_service.delete_testimonial(engine, testimonial_id, user_id)

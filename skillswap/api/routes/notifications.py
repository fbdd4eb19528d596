"""
skillswap.api.routes.notifications — Notification inbox
========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from skillswap.api.deps import get_current_user_id, get_engine
from skillswap.database.models import Notification
from skillswap.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "message": n.message,
        "is_read": n.is_read,
        "chat_id": n.chat_id,
        "request_id": n.request_id,
        "offerer_id": n.offerer_id,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


@router.get("")
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    items = notification_service.list_notifications(
        engine, user_id, unread_only=unread_only, limit=limit
    )
    return {"notifications": [_notification_dict(n) for n in items]}


@router.get("/unread-count")
def unread_count(
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    return {"unread": notification_service.unread_count(engine, user_id)}


@router.post("/read-all")
def mark_all_read(
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    return {"marked": notification_service.mark_all_read(engine, user_id)}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    return _notification_dict(notification_service.mark_read(engine, notification_id, user_id))

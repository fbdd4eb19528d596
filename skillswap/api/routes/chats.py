"""
skillswap.api.routes.chats — Chat threads & messages
=====================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import Engine

from skillswap.api.deps import get_config, get_current_user_id, get_engine
from skillswap.config import SkillSwapConfig
from skillswap.database.models import Message
from skillswap.services import chat_service

router = APIRouter(prefix="/chats", tags=["chats"])


class ChatOpen(BaseModel):
    request_id: int
    other_user_id: str


class MessageCreate(BaseModel):
    text: str


def _message_dict(m: Message) -> dict:
    return {
        "id": m.id,
        "chat_id": m.chat_id,
        "sender_id": m.sender_id,
        "text": m.text,
        "read": m.read,
        "timestamp": m.timestamp.isoformat() if m.timestamp else None,
    }


@router.get("")
def my_chats(
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    return {"chats": chat_service.get_user_chats(engine, user_id)}


@router.post("")
def open_chat(
    body: ChatOpen,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    """Return the caller's chat with *other_user_id* about a request, creating it if needed."""
    chat_id = chat_service.get_or_create_chat(engine, body.request_id, user_id, body.other_user_id, cfg)
    return {"chat_id": chat_id}


@router.get("/{chat_id}/messages")
def list_messages(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    return {"messages": [_message_dict(m) for m in chat_service.list_messages(engine, chat_id, user_id)]}


@router.post("/{chat_id}/messages")
def send_message(
    chat_id: str,
    body: MessageCreate,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
    cfg: SkillSwapConfig = Depends(get_config),
):
    message = chat_service.send_message(engine, chat_id, user_id, body.text, cfg)
    if message is None:
        return {"sent": False}
    return {"sent": True, "message": _message_dict(message)}


@router.post("/{chat_id}/read")
def mark_read(
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: Engine = Depends(get_engine),
):
    return {"marked": chat_service.mark_messages_as_read(engine, chat_id, user_id)}

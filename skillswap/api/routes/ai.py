"""
skillswap.api.routes.ai — Writing suggestions for request authors
==================================================================
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from skillswap.api.deps import get_ai_service, get_current_user_id
from skillswap.services.ai_service import AISuggestionService

router = APIRouter(prefix="/ai", tags=["ai"], dependencies=[Depends(get_current_user_id)])


class DraftRequest(BaseModel):
    title: str = ""
    description: str = ""


@router.post("/tags")
def suggest_tags(body: DraftRequest, ai: AISuggestionService = Depends(get_ai_service)):
    return {"tags": ai.suggest_tags(body.title, body.description)}


@router.post("/tips")
def clarity_tips(body: DraftRequest, ai: AISuggestionService = Depends(get_ai_service)):
    return {"tips": ai.clarity_tips(body.title, body.description)}


@router.post("/quality")
def analyze_quality(body: DraftRequest, ai: AISuggestionService = Depends(get_ai_service)):
    return asdict(ai.analyze_quality(body.title, body.description))


@router.post("/enhance")
def enhance(body: DraftRequest, ai: AISuggestionService = Depends(get_ai_service)):
    return {"description": ai.enhance_description(body.title, body.description)}

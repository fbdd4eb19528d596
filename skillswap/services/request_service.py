"""
skillswap.services.request_service — Help Request Lifecycle
============================================================

A request moves ``open → in_progress → completed``; an offer moves
``pending → accepted | rejected`` and an accepted offer finally becomes
``completed``.  Every transition is one transaction that also queues the
notifications and badge checks it causes.

Completing a request awards the helper karma under the source key
``request:<id>``, so a second completion attempt changes nothing.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, func, select, update
from sqlalchemy.orm import Session

from skillswap.config import SkillSwapConfig
from skillswap.constants import (
    TIME_ESTIMATES,
    UNKNOWN_USER_NAME,
    URGENCY_LEVELS,
    normalize_tags,
)
from skillswap.database.engine import get_session
from skillswap.database.models import (
    HelpRequest,
    HelpResponse,
    NotificationType,
    RequestStatus,
    ResponseStatus,
    User,
)
from skillswap.errors import NotFoundError, PermissionDenied, ValidationFailure
from skillswap.services.badge_service import queue_badge_check
from skillswap.services.karma_service import apply_karma
from skillswap.services.notification_service import notify
from skillswap.services.outbox import dispatch_pending

logger = logging.getLogger(__name__)

_TAG_SCAN_PAGE = 200


def _load_request(session: Session, request_id: int) -> HelpRequest:
    request = session.get(HelpRequest, request_id)
    if request is None:
        raise NotFoundError(f"Request {request_id} not found.")
    return request


def _load_response(session: Session, request_id: int, response_id: int) -> HelpResponse:
    response = session.get(HelpResponse, response_id)
    if response is None or response.request_id != request_id:
        raise NotFoundError(f"Offer {response_id} not found on request {request_id}.")
    return response


def _require_user(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found.")
    return user


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
def create_request(
    engine: Engine,
    owner_id: str,
    title: str,
    description: str,
    *,
    offer_in_return: str = "",
    tags: list[str] | None = None,
    urgency: str = "medium",
    estimated_time: str = "30min",
    cfg: SkillSwapConfig | None = None,
) -> HelpRequest:
    """Post a new open request."""
    title = (title or "").strip()
    description = (description or "").strip()
    if not title:
        raise ValidationFailure("Title is required.")
    if not description:
        raise ValidationFailure("Description is required.")
    if urgency not in URGENCY_LEVELS:
        raise ValidationFailure(f"Urgency must be one of {', '.join(URGENCY_LEVELS)}.")
    if estimated_time not in TIME_ESTIMATES:
        raise ValidationFailure(f"Estimated time must be one of {', '.join(TIME_ESTIMATES)}.")

    with get_session(engine) as session:
        _require_user(session, owner_id)
        request = HelpRequest(
            user_id=owner_id,
            title=title,
            description=description,
            offer_in_return=(offer_in_return or "").strip(),
            tags=normalize_tags(tags),
            urgency=urgency,
            estimated_time=estimated_time,
            status=RequestStatus.OPEN.value,
        )
        session.add(request)
        session.flush()
        session.refresh(request)
        queue_badge_check(session, owner_id)

    logger.info("Request %d created by %s", request.id, owner_id)
    dispatch_pending(engine, cfg)
    return request


def get_request(engine: Engine, request_id: int) -> HelpRequest:
    with Session(engine) as session:
        return _load_request(session, request_id)


def list_requests(
    engine: Engine,
    *,
    status: str | None = None,
    tag: str | None = None,
    owner_id: str | None = None,
    limit: int = 50,
) -> list[HelpRequest]:
    """Newest first, optionally filtered by status, tag or owner."""
    if status is not None and status not in set(RequestStatus):
        raise ValidationFailure(f"Unknown request status: {status!r}")

    wanted = (tag or "").strip().lower()
    with Session(engine) as session:
        stmt = select(HelpRequest)
        if status is not None:
            stmt = stmt.where(HelpRequest.status == status)
        if owner_id is not None:
            stmt = stmt.where(HelpRequest.user_id == owner_id)
        stmt = stmt.order_by(HelpRequest.created_at.desc(), HelpRequest.id.desc())

        if not wanted:
            return list(session.scalars(stmt.limit(limit)).all())
        if engine.dialect.name == "postgresql":
            stmt = stmt.where(HelpRequest.tags.contains([wanted]))
            return list(session.scalars(stmt.limit(limit)).all())

        # No JSONB containment elsewhere: scan page by page until filled.
        matched: list[HelpRequest] = []
        offset = 0
        while len(matched) < limit:
            page = session.scalars(stmt.offset(offset).limit(_TAG_SCAN_PAGE)).all()
            matched.extend(r for r in page if wanted in (r.tags or []))
            if len(page) < _TAG_SCAN_PAGE:
                break
            offset += _TAG_SCAN_PAGE
        return matched[:limit]


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------
def submit_offer(
    engine: Engine,
    request_id: int,
    helper_id: str,
    message: str,
    cfg: SkillSwapConfig | None = None,
) -> HelpResponse:
    """Offer to help with an open request and notify its owner."""
    message = (message or "").strip()
    if not message:
        raise ValidationFailure("Please enter a message.")

    with get_session(engine) as session:
        request = _load_request(session, request_id)
        helper = _require_user(session, helper_id)
        if request.user_id == helper_id:
            raise ValidationFailure("You cannot offer help on your own request.")
        if request.status != RequestStatus.OPEN.value:
            raise ValidationFailure("This request is no longer accepting offers.")

        response = HelpResponse(
            request_id=request_id,
            helper_id=helper_id,
            message=message,
            status=ResponseStatus.PENDING.value,
        )
        session.add(response)
        session.flush()
        session.refresh(response)

        name = helper.display_name or UNKNOWN_USER_NAME
        notify(
            session, request.user_id, NotificationType.NEW_OFFER,
            f'{name} offered to help with your request: "{request.title}"',
            request_id=request_id, offerer_id=helper_id,
        )
        queue_badge_check(session, helper_id)

    logger.info("Offer %d on request %d by %s", response.id, request_id, helper_id)
    dispatch_pending(engine, cfg)
    return response


def list_responses(engine: Engine, request_id: int) -> list[HelpResponse]:
    with Session(engine) as session:
        _load_request(session, request_id)
        return list(session.scalars(
            select(HelpResponse)
            .where(HelpResponse.request_id == request_id)
            .order_by(HelpResponse.created_at, HelpResponse.id)
        ).all())


def list_contributions(engine: Engine, helper_id: str) -> list[tuple[HelpResponse, HelpRequest]]:
    """Offers *helper_id* made, newest first, paired with their request."""
    with Session(engine) as session:
        rows = session.execute(
            select(HelpResponse, HelpRequest)
            .join(HelpRequest, HelpRequest.id == HelpResponse.request_id)
            .where(HelpResponse.helper_id == helper_id)
            .order_by(HelpResponse.created_at.desc(), HelpResponse.id.desc())
        ).all()
        return [(response, request) for response, request in rows]


def accept_offer(
    engine: Engine,
    request_id: int,
    response_id: int,
    owner_id: str,
    cfg: SkillSwapConfig | None = None,
) -> HelpResponse:
    """Accept a pending offer; the request moves to in_progress.

    Raises
    ------
    PermissionDenied
        If *owner_id* does not own the request.
    ValidationFailure
        If the request is not open or the offer is not pending.
    """
    with get_session(engine) as session:
        request = _load_request(session, request_id)
        if request.user_id != owner_id:
            raise PermissionDenied("Only the request owner can accept offers.")
        response = _load_response(session, request_id, response_id)
        if response.status != ResponseStatus.PENDING.value:
            raise ValidationFailure("Only pending offers can be accepted.")

        # Conditional update keeps accepted_helper_id write-once.
        result = session.execute(
            update(HelpRequest)
            .where(
                HelpRequest.id == request_id,
                HelpRequest.status == RequestStatus.OPEN.value,
                HelpRequest.accepted_helper_id.is_(None),
            )
            .values(
                status=RequestStatus.IN_PROGRESS.value,
                accepted_helper_id=response.helper_id,
            )
        )
        if result.rowcount == 0:
            raise ValidationFailure("This request already has an accepted helper.")

        response.status = ResponseStatus.ACCEPTED.value
        response.accepted_at = datetime.now(UTC)

        notify(
            session, response.helper_id, NotificationType.OFFER_ACCEPTED,
            f'Your offer to help with "{request.title}" was accepted!',
            request_id=request_id,
        )

    logger.info("Offer %d accepted on request %d", response_id, request_id)
    dispatch_pending(engine, cfg)
    return response


def reject_offer(
    engine: Engine,
    request_id: int,
    response_id: int,
    owner_id: str,
    cfg: SkillSwapConfig | None = None,
) -> HelpResponse:
    """Decline a pending offer and tell the helper."""
    with get_session(engine) as session:
        request = _load_request(session, request_id)
        if request.user_id != owner_id:
            raise PermissionDenied("Only the request owner can reject offers.")
        response = _load_response(session, request_id, response_id)
        if response.status != ResponseStatus.PENDING.value:
            raise ValidationFailure("Only pending offers can be rejected.")

        response.status = ResponseStatus.REJECTED.value
        response.rejected_at = datetime.now(UTC)

        notify(
            session, response.helper_id, NotificationType.OFFER_REJECTED,
            f'Your offer to help with "{request.title}" was declined.',
            request_id=request_id,
        )

    logger.info("Offer %d rejected on request %d", response_id, request_id)
    dispatch_pending(engine, cfg)
    return response


def complete_request(
    engine: Engine,
    request_id: int,
    owner_id: str,
    cfg: SkillSwapConfig | None = None,
) -> tuple[HelpRequest, bool]:
    """Mark an in-progress request completed and reward its helper.

    Returns (request, karma_awarded).  Completing an already completed
    request is a no-op returning ``(request, False)``.
    """
    cfg = cfg or SkillSwapConfig()
    with get_session(engine) as session:
        request = _load_request(session, request_id)
        if request.user_id != owner_id:
            raise PermissionDenied("Only the request owner can complete it.")
        if request.status == RequestStatus.COMPLETED.value:
            return request, False
        if request.status != RequestStatus.IN_PROGRESS.value or not request.accepted_helper_id:
            raise ValidationFailure("Accept an offer before completing the request.")

        helper_id = request.accepted_helper_id
        awarded = apply_karma(
            session, helper_id, cfg.karma_per_help,
            reason=f"Helped with request {request_id}",
            source_key=f"request:{request_id}",
        )
        if not awarded:
            return request, False

        now = datetime.now(UTC)
        request.status = RequestStatus.COMPLETED.value
        request.completed_at = now

        response = session.scalar(
            select(HelpResponse).where(
                HelpResponse.request_id == request_id,
                HelpResponse.helper_id == helper_id,
                HelpResponse.status == ResponseStatus.ACCEPTED.value,
            )
        )
        if response is not None:
            response.status = ResponseStatus.COMPLETED.value
            response.completed_at = now
            response.karma_awarded = cfg.karma_per_help

        notify(
            session, helper_id, NotificationType.KARMA_AWARDED,
            f'You earned {cfg.karma_per_help} karma for helping with "{request.title}"',
            request_id=request_id,
        )
        queue_badge_check(session, helper_id)

    logger.info("Request %d completed — helper %s rewarded", request_id, helper_id)
    dispatch_pending(engine, cfg)
    return request, True


# ---------------------------------------------------------------------------
# Profile activity
# ---------------------------------------------------------------------------
def profile_stats(engine: Engine, user_id: str) -> dict:
    """Request counters shown on a profile.

    ``success_rate`` is the rounded percentage of the user's own requests
    that were completed.  ``avg_response_minutes`` averages the time from
    posting a request to its first offer, over requests that got one.
    """
    with Session(engine) as session:
        _require_user(session, user_id)

        total_requests = session.scalar(
            select(func.count()).select_from(HelpRequest).where(HelpRequest.user_id == user_id)
        ) or 0
        completed = session.scalar(
            select(func.count()).select_from(HelpRequest).where(
                HelpRequest.user_id == user_id,
                HelpRequest.status == RequestStatus.COMPLETED.value,
            )
        ) or 0
        contributions = session.scalar(
            select(func.count()).select_from(HelpRequest).where(
                HelpRequest.accepted_helper_id == user_id
            )
        ) or 0
        first_offers = session.execute(
            select(HelpRequest.created_at, func.min(HelpResponse.created_at))
            .join(HelpResponse, HelpResponse.request_id == HelpRequest.id)
            .where(HelpRequest.user_id == user_id)
            .group_by(HelpRequest.id, HelpRequest.created_at)
        ).all()

    waits = [
        (first - posted).total_seconds()
        for posted, first in first_offers
        if posted is not None and first is not None
    ]
    return {
        "total_requests": total_requests,
        "total_contributions": contributions,
        "success_rate": round(completed * 100 / total_requests) if total_requests else 0,
        "avg_response_minutes": round(sum(waits) / len(waits) / 60) if waits else 0,
    }


def activity_history(engine: Engine, user_id: str, limit: int = 10) -> list[dict]:
    """The user's own requests and the requests they helped on, newest first.

    Each entry is ``{"type": "request" | "contribution", "request": HelpRequest}``.
    """
    newest = (HelpRequest.created_at.desc(), HelpRequest.id.desc())
    with Session(engine) as session:
        _require_user(session, user_id)
        posted = session.scalars(
            select(HelpRequest).where(HelpRequest.user_id == user_id)
            .order_by(*newest).limit(limit)
        ).all()
        helped = session.scalars(
            select(HelpRequest).where(HelpRequest.accepted_helper_id == user_id)
            .order_by(*newest).limit(limit)
        ).all()

    entries = [{"type": "request", "request": r} for r in posted]
    entries += [{"type": "contribution", "request": r} for r in helped]
    entries.sort(key=lambda e: (e["request"].created_at, e["request"].id), reverse=True)
    return entries[:limit]

"""
tests/test_request_service.py — Request / Offer Lifecycle Tests
================================================================
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import event, update

from skillswap.config import SkillSwapConfig
from skillswap.database.engine import get_session
from skillswap.database.models import HelpRequest, HelpResponse
from skillswap.errors import NotFoundError, PermissionDenied, ValidationFailure
from skillswap.services import request_service
from skillswap.services.karma_service import get_karma, karma_history
from skillswap.services.notification_service import list_notifications
from skillswap.services.request_service import (
    accept_offer,
    activity_history,
    complete_request,
    create_request,
    get_request,
    list_contributions,
    list_requests,
    list_responses,
    profile_stats,
    reject_offer,
    submit_offer,
)


@pytest.fixture
def css_request(db_engine, users):
    return create_request(
        db_engine, "alice", "Need help with CSS", "My grid collapses on mobile",
        tags=["CSS", " css ", "Frontend"], urgency="high", estimated_time="1hour",
    )


class TestCreateRequest:
    def test_defaults_and_normalized_tags(self, db_engine, css_request):
        assert css_request.status == "open"
        assert css_request.accepted_helper_id is None
        assert css_request.tags == ["css", "frontend"]
        assert css_request.created_at is not None

    def test_first_post_badge(self, db_engine, css_request):
        from skillswap.services.badge_service import list_user_badges
        assert [b.badge_id for b in list_user_badges(db_engine, "alice")] == ["first-post"]

    @pytest.mark.parametrize("title,description", [("", "x"), ("x", "   ")])
    def test_blank_fields_rejected(self, db_engine, users, title, description):
        with pytest.raises(ValidationFailure):
            create_request(db_engine, "alice", title, description)

    def test_bad_urgency(self, db_engine, users):
        with pytest.raises(ValidationFailure):
            create_request(db_engine, "alice", "t", "d", urgency="asap")

    def test_bad_time_estimate(self, db_engine, users):
        with pytest.raises(ValidationFailure):
            create_request(db_engine, "alice", "t", "d", estimated_time="forever")

    def test_unknown_owner(self, db_engine):
        with pytest.raises(NotFoundError):
            create_request(db_engine, "ghost", "t", "d")


class TestListRequests:
    def test_filters(self, db_engine, css_request):
        other = create_request(db_engine, "bob", "Math", "Integrals", tags=["math"])

        assert {r.id for r in list_requests(db_engine)} == {css_request.id, other.id}
        assert [r.id for r in list_requests(db_engine, tag="CSS")] == [css_request.id]
        assert [r.id for r in list_requests(db_engine, owner_id="bob")] == [other.id]
        assert list_requests(db_engine, status="completed") == []

    def test_unknown_status(self, db_engine, users):
        with pytest.raises(ValidationFailure):
            list_requests(db_engine, status="archived")

    def test_limit_applied_in_sql(self, db_engine, users):
        for i in range(3):
            create_request(db_engine, "alice", f"t{i}", "d")

        statements: list[str] = []

        def capture(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        event.listen(db_engine, "before_cursor_execute", capture)
        try:
            assert len(list_requests(db_engine, limit=1)) == 1
        finally:
            event.remove(db_engine, "before_cursor_execute", capture)

        [query] = [s for s in statements if "FROM requests" in s]
        assert "LIMIT" in query

    def test_tag_filter_scans_in_pages(self, db_engine, users, monkeypatch):
        monkeypatch.setattr(request_service, "_TAG_SCAN_PAGE", 2)
        created = [
            create_request(db_engine, "alice", f"t{i}", "d", tags=["python"] if i % 2 == 0 else ["go"])
            for i in range(5)
        ]
        r0, _, r2, _, r4 = created

        assert [r.id for r in list_requests(db_engine, tag="python", limit=2)] == [r4.id, r2.id]
        assert [r.id for r in list_requests(db_engine, tag="python")] == [r4.id, r2.id, r0.id]
        assert list_requests(db_engine, tag="rust") == []


class TestOffers:
    def test_offer_notifies_owner(self, db_engine, css_request):
        offer = submit_offer(db_engine, css_request.id, "bob", "I can pair on it")
        assert offer.status == "pending"

        notes = list_notifications(db_engine, "alice")
        assert len(notes) == 1
        assert notes[0].type == "new_offer"
        assert notes[0].message == 'Bob offered to help with your request: "Need help with CSS"'
        assert notes[0].offerer_id == "bob"
        assert notes[0].request_id == css_request.id

    def test_cannot_offer_on_own_request(self, db_engine, css_request):
        with pytest.raises(ValidationFailure):
            submit_offer(db_engine, css_request.id, "alice", "me!")

    def test_empty_message_rejected(self, db_engine, css_request):
        with pytest.raises(ValidationFailure):
            submit_offer(db_engine, css_request.id, "bob", "  ")

    def test_unknown_request(self, db_engine, users):
        with pytest.raises(NotFoundError):
            submit_offer(db_engine, 404, "bob", "hi")

    def test_closed_request_rejects_offers(self, db_engine, css_request):
        offer = submit_offer(db_engine, css_request.id, "bob", "me")
        accept_offer(db_engine, css_request.id, offer.id, "alice")
        with pytest.raises(ValidationFailure):
            submit_offer(db_engine, css_request.id, "carol", "me too")

    def test_contributions(self, db_engine, css_request):
        submit_offer(db_engine, css_request.id, "bob", "me")
        [(response, request)] = list_contributions(db_engine, "bob")
        assert response.helper_id == "bob"
        assert request.title == "Need help with CSS"
        assert list_contributions(db_engine, "carol") == []


class TestAcceptReject:
    def test_accept_moves_request_in_progress(self, db_engine, css_request):
        offer = submit_offer(db_engine, css_request.id, "bob", "me")
        accepted = accept_offer(db_engine, css_request.id, offer.id, "alice")
        assert accepted.status == "accepted"
        assert accepted.accepted_at is not None

        request = get_request(db_engine, css_request.id)
        assert request.status == "in_progress"
        assert request.accepted_helper_id == "bob"

    def test_only_owner_may_accept(self, db_engine, css_request):
        offer = submit_offer(db_engine, css_request.id, "bob", "me")
        with pytest.raises(PermissionDenied):
            accept_offer(db_engine, css_request.id, offer.id, "carol")

    def test_second_accept_rejected(self, db_engine, css_request):
        first = submit_offer(db_engine, css_request.id, "bob", "me")
        second = submit_offer(db_engine, css_request.id, "carol", "me too")
        accept_offer(db_engine, css_request.id, first.id, "alice")

        with pytest.raises(ValidationFailure):
            accept_offer(db_engine, css_request.id, second.id, "alice")
        assert get_request(db_engine, css_request.id).accepted_helper_id == "bob"

    def test_offer_must_belong_to_request(self, db_engine, css_request):
        other = create_request(db_engine, "alice", "Other", "thing")
        offer = submit_offer(db_engine, other.id, "bob", "me")
        with pytest.raises(NotFoundError):
            accept_offer(db_engine, css_request.id, offer.id, "alice")

    def test_reject_notifies_helper(self, db_engine, css_request):
        offer = submit_offer(db_engine, css_request.id, "bob", "me")
        rejected = reject_offer(db_engine, css_request.id, offer.id, "alice")
        assert rejected.status == "rejected"
        assert get_request(db_engine, css_request.id).status == "open"

        notes = list_notifications(db_engine, "bob")
        assert notes[0].type == "offer_rejected"
        assert notes[0].message == 'Your offer to help with "Need help with CSS" was declined.'

    def test_rejected_offer_cannot_be_accepted(self, db_engine, css_request):
        offer = submit_offer(db_engine, css_request.id, "bob", "me")
        reject_offer(db_engine, css_request.id, offer.id, "alice")
        with pytest.raises(ValidationFailure):
            accept_offer(db_engine, css_request.id, offer.id, "alice")


class TestCompleteRequest:
    def test_full_help_flow(self, db_engine, css_request):
        offer = submit_offer(db_engine, css_request.id, "bob", "I can pair on it")
        accept_offer(db_engine, css_request.id, offer.id, "alice")
        request, awarded = complete_request(db_engine, css_request.id, "alice")

        assert awarded
        assert request.status == "completed"
        assert request.completed_at is not None
        assert get_karma(db_engine, "bob") == 5

        [response] = list_responses(db_engine, css_request.id)
        assert response.status == "completed"
        assert response.karma_awarded == 5
        assert response.completed_at is not None

        notes = list_notifications(db_engine, "bob")
        assert [n.type for n in notes] == ["karma_awarded", "offer_accepted"]
        assert notes[0].message == 'You earned 5 karma for helping with "Need help with CSS"'
        assert notes[1].message == 'Your offer to help with "Need help with CSS" was accepted!'

    def test_completing_twice_awards_once(self, db_engine, css_request):
        offer = submit_offer(db_engine, css_request.id, "bob", "me")
        accept_offer(db_engine, css_request.id, offer.id, "alice")
        complete_request(db_engine, css_request.id, "alice")

        request, awarded = complete_request(db_engine, css_request.id, "alice")
        assert not awarded
        assert request.status == "completed"
        assert get_karma(db_engine, "bob") == 5
        assert len(karma_history(db_engine, "bob")) == 1
        assert len(list_notifications(db_engine, "bob")) == 2

    def test_karma_from_config(self, db_engine, css_request):
        offer = submit_offer(db_engine, css_request.id, "bob", "me")
        accept_offer(db_engine, css_request.id, offer.id, "alice")
        complete_request(db_engine, css_request.id, "alice", SkillSwapConfig(karma_per_help=12))
        assert get_karma(db_engine, "bob") == 12

    def test_requires_accepted_offer(self, db_engine, css_request):
        with pytest.raises(ValidationFailure):
            complete_request(db_engine, css_request.id, "alice")

    def test_only_owner_may_complete(self, db_engine, css_request):
        offer = submit_offer(db_engine, css_request.id, "bob", "me")
        accept_offer(db_engine, css_request.id, offer.id, "alice")
        with pytest.raises(PermissionDenied):
            complete_request(db_engine, css_request.id, "bob")
        assert get_karma(db_engine, "bob") == 0


class TestProfileStats:
    def test_counts_and_success_rate(self, db_engine, users):
        done = create_request(db_engine, "alice", "a", "d")
        create_request(db_engine, "alice", "b", "d")
        create_request(db_engine, "alice", "c", "d")
        offer = submit_offer(db_engine, done.id, "bob", "me")
        accept_offer(db_engine, done.id, offer.id, "alice")
        complete_request(db_engine, done.id, "alice")

        stats = profile_stats(db_engine, "alice")
        assert stats["total_requests"] == 3
        assert stats["total_contributions"] == 0
        assert stats["success_rate"] == 33
        assert profile_stats(db_engine, "bob")["total_contributions"] == 1

    def test_new_member_is_all_zero(self, db_engine, users):
        assert profile_stats(db_engine, "carol") == {
            "total_requests": 0,
            "total_contributions": 0,
            "success_rate": 0,
            "avg_response_minutes": 0,
        }

    def test_average_wait_for_first_offer(self, db_engine, users):
        quick = create_request(db_engine, "alice", "quick", "d")
        slow = create_request(db_engine, "alice", "slow", "d")
        create_request(db_engine, "alice", "ignored", "d")
        first = submit_offer(db_engine, quick.id, "bob", "me")
        later = submit_offer(db_engine, quick.id, "carol", "me too")
        only = submit_offer(db_engine, slow.id, "bob", "me")

        posted = datetime(2024, 5, 1, 12, 0)
        with get_session(db_engine) as session:
            session.execute(update(HelpRequest).values(created_at=posted))
            for offer_id, minutes in ((first.id, 10), (later.id, 90), (only.id, 30)):
                session.execute(
                    update(HelpResponse)
                    .where(HelpResponse.id == offer_id)
                    .values(created_at=posted + timedelta(minutes=minutes))
                )

        assert profile_stats(db_engine, "alice")["avg_response_minutes"] == 20

    def test_unknown_user(self, db_engine):
        with pytest.raises(NotFoundError):
            profile_stats(db_engine, "ghost")


class TestActivityHistory:
    def test_requests_and_contributions_newest_first(self, db_engine, users):
        own = create_request(db_engine, "bob", "own", "d")
        helped = create_request(db_engine, "alice", "helped", "d")
        offer = submit_offer(db_engine, helped.id, "bob", "me")
        accept_offer(db_engine, helped.id, offer.id, "alice")
        newer = create_request(db_engine, "bob", "newer", "d")

        entries = activity_history(db_engine, "bob")
        assert [(e["type"], e["request"].id) for e in entries] == [
            ("request", newer.id), ("contribution", helped.id), ("request", own.id),
        ]
        assert len(activity_history(db_engine, "bob", limit=2)) == 2

    def test_pending_offers_are_not_contributions(self, db_engine, css_request):
        submit_offer(db_engine, css_request.id, "bob", "me")
        assert activity_history(db_engine, "bob") == []

    def test_unknown_user(self, db_engine):
        with pytest.raises(NotFoundError):
            activity_history(db_engine, "ghost")

"""
tests/test_karma.py — Karma Ledger Tests
=========================================
"""

from __future__ import annotations

import pytest

from skillswap.errors import NotFoundError, ValidationFailure
from skillswap.services.karma_service import award_karma, get_karma, karma_history


class TestAwardKarma:
    def test_adds_delta(self, db_engine, users):
        assert award_karma(db_engine, "bob", 5, reason="helped")
        assert award_karma(db_engine, "bob", 3)
        assert get_karma(db_engine, "bob") == 8

    def test_writes_ledger_rows(self, db_engine, users):
        award_karma(db_engine, "bob", 5, reason="helped", source_key="request:1")
        history = karma_history(db_engine, "bob")
        assert len(history) == 1
        assert history[0].delta == 5
        assert history[0].reason == "helped"
        assert history[0].source_key == "request:1"

    def test_repeat_source_key_is_noop(self, db_engine, users):
        assert award_karma(db_engine, "bob", 5, source_key="request:7")
        assert not award_karma(db_engine, "bob", 5, source_key="request:7")

        assert get_karma(db_engine, "bob") == 5
        assert len(karma_history(db_engine, "bob")) == 1

    def test_awards_without_key_are_not_deduplicated(self, db_engine, users):
        award_karma(db_engine, "bob", 1)
        award_karma(db_engine, "bob", 1)
        assert len(karma_history(db_engine, "bob")) == 2

    def test_other_users_untouched(self, db_engine, users):
        award_karma(db_engine, "bob", 5)
        assert get_karma(db_engine, "alice") == 0

    @pytest.mark.parametrize("delta", [0, -5, True, 2.5])
    def test_rejects_non_positive_or_non_int(self, db_engine, users, delta):
        with pytest.raises(ValidationFailure):
            award_karma(db_engine, "bob", delta)
        assert get_karma(db_engine, "bob") == 0

    def test_unknown_user(self, db_engine):
        with pytest.raises(NotFoundError):
            award_karma(db_engine, "ghost", 5)


class TestReadKarma:
    def test_get_karma_unknown_user(self, db_engine):
        with pytest.raises(NotFoundError):
            get_karma(db_engine, "ghost")

    def test_history_limit(self, db_engine, users):
        for _ in range(4):
            award_karma(db_engine, "carol", 1)
        assert len(karma_history(db_engine, "carol", limit=2)) == 2

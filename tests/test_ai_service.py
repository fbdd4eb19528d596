"""
tests/test_ai_service.py — AI Suggestion Client Tests
======================================================

The remote endpoint is replaced by ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
import random
from unittest.mock import MagicMock

import httpx
import pytest

from skillswap.config import SkillSwapConfig
from skillswap.errors import RemoteServiceFailure
from skillswap.services.ai_service import (
    COMMON_TAGS,
    ENHANCE_TEMPLATE,
    FALLBACK_TIPS,
    AISuggestionService,
    QualityScores,
)

CFG = SkillSwapConfig(ai_models=("model-a", "model-b"))


def _reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def _service(handler, **kwargs) -> AISuggestionService:
    return AISuggestionService(
        CFG,
        api_key="test-key",
        api_url="https://ai.example.org/v1",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestGenerate:
    def test_request_shape(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return _reply("python, flask")

        assert _service(handler).suggest_tags("Flask app", "routing") == ["python", "flask"]

        [request] = seen
        assert request.method == "POST"
        assert request.url.path == "/v1/models/model-a:generateContent"
        assert request.url.params["key"] == "test-key"
        body = json.loads(request.content)
        assert "Flask app" in body["contents"][0]["parts"][0]["text"]

    def test_falls_through_to_next_model(self):
        calls: list[str] = []

        def handler(request):
            calls.append(request.url.path)
            if "model-a" in request.url.path:
                return httpx.Response(500)
            return _reply("Be specific.")

        assert _service(handler).clarity_tips("t", "d") == "Be specific."
        assert len(calls) == 2

    def test_unexpected_payload_tries_next_model(self):
        def handler(request):
            if "model-a" in request.url.path:
                return httpx.Response(200, json={"oops": True})
            return _reply("8,7,9")

        assert _service(handler).analyze_quality("t", "d") == QualityScores(8, 7, 9)

    def test_all_models_fail(self):
        service = _service(lambda request: httpx.Response(503))
        with pytest.raises(RemoteServiceFailure):
            service._generate("prompt")

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(RemoteServiceFailure):
            _service(handler)._generate("prompt")

    def test_no_key_never_calls_out(self):
        handler = MagicMock()
        service = AISuggestionService(CFG, api_key="", transport=httpx.MockTransport(handler))
        with pytest.raises(RemoteServiceFailure):
            service._generate("prompt")
        handler.assert_not_called()


class TestFallbacks:
    def _offline(self, **kwargs) -> AISuggestionService:
        return AISuggestionService(CFG, api_key="", **kwargs)

    def test_tags_from_common_list(self):
        tags = self._offline(rng=random.Random(1)).suggest_tags("Gardening", "tomatoes")
        assert 1 <= len(tags) <= 5
        assert set(tags) <= set(COMMON_TAGS)
        assert len(tags) == len(set(tags))

    def test_title_keyword_adds_tag(self):
        rng = MagicMock()
        rng.randint.return_value = 3
        rng.choice.side_effect = ["math", "art", "music"]
        tags = self._offline(rng=rng).suggest_tags("Help me code a game", "pygame")
        assert tags == ["math", "art", "music", "coding"]

    def test_keyword_tag_capped_at_five(self):
        rng = MagicMock()
        rng.randint.return_value = 5
        rng.choice.side_effect = ["math", "art", "music", "science", "business"]
        tags = self._offline(rng=rng).suggest_tags("Calculus exam", "limits")
        assert tags == ["math", "art", "music", "science", "business"]

    def test_tips(self):
        tips = self._offline(rng=random.Random(3)).clarity_tips("t", "d")
        assert any(tip in tips for tip in FALLBACK_TIPS)

    def test_quality_range(self):
        scores = self._offline(rng=random.Random(7)).analyze_quality("t", "d")
        for value in (scores.clarity, scores.specificity, scores.likelihood):
            assert 5 <= value <= 9

    @pytest.mark.parametrize("reply", ["great request", "11,5,5", "5,5", "0,4,4"])
    def test_bad_quality_reply_falls_back(self, reply):
        scores = _service(lambda request: _reply(reply)).analyze_quality("t", "d")
        assert all(5 <= v <= 9 for v in (scores.clarity, scores.specificity, scores.likelihood))

    def test_short_description_gets_template(self):
        enhanced = self._offline().enhance_description("t", "Help with CSS")
        assert enhanced == ENHANCE_TEMPLATE.format(description="Help with CSS")
        assert "<specific details>" in enhanced

    def test_long_description_returned_unchanged(self):
        text = "I am building a responsive layout and the grid collapses below 600px."
        assert self._offline().enhance_description("t", text) == text

    def test_remote_enhancement_used_when_available(self):
        service = _service(lambda request: _reply("  Better text.  "))
        assert service.enhance_description("t", "short") == "Better text."

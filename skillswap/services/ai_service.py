"""
skillswap.services.ai_service — AI Writing Suggestions
=======================================================

Helps request authors with tags, clarity tips, a quality score and an
enhanced description.  Calls a Gemini-style ``generateContent`` endpoint
over httpx, trying each configured model in order.

Any failure (no API key, network error, non-200 status, unparseable reply)
falls back to locally generated placeholders, so these helpers never
raise to their callers.
"""

from __future__ import annotations

import logging
import os
import random
from dataclasses import dataclass

import httpx

from skillswap.config import SkillSwapConfig
from skillswap.errors import RemoteServiceFailure

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://generativelanguage.googleapis.com/v1beta"

COMMON_TAGS: tuple[str, ...] = (
    "programming", "math", "writing", "design", "language",
    "science", "music", "business", "art", "technology",
)

# (title keywords, extra tag) — first match wins
TITLE_KEYWORD_TAGS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("code", "programming"), "coding"),
    (("math", "calculus"), "mathematics"),
    (("write", "essay"), "writing"),
)

FALLBACK_TIPS: tuple[str, ...] = (
    "Add more specific details about what you're trying to accomplish.",
    "Mention any previous approaches or solutions you've already tried.",
    "Specify your skill level with this topic to get more appropriate help.",
    "Include a clear example of what you're working on.",
    "Mention any deadlines or time constraints for your request.",
)

ENHANCE_MIN_LENGTH = 50
ENHANCE_TEMPLATE = (
    "{description} I need help with <specific details> because <reason>. "
    "I've already tried <previous attempts> and I'm looking for "
    "<type of assistance needed>."
)

_TAGS_PROMPT = """You are an expert skill-matching assistant for a platform called SkillSwap where people exchange skills and help.

Request Title: "{title}"
Request Description: "{description}"

Suggest 4-6 relevant, specific tags that categorize this request and make it discoverable by people with matching skills.
For technical topics, include both general and specific tags (e.g., "programming" AND "javascript").

Return ONLY the tags as a comma-separated list, no explanations or other text."""

_TIPS_PROMPT = """You are a helpful assistant for a skill-sharing platform called SkillSwap.

Request Title: "{title}"
Request Description: "{description}"

Provide 2-3 brief, actionable suggestions that would make this request clearer and more likely to get help.
Format your response as bullet points, starting each point with "• ". Do not include any introductory text."""

_QUALITY_PROMPT = """You are an expert evaluator for a skill-sharing platform called SkillSwap.

Request Title: "{title}"
Request Description: "{description}"

Rate this request from 1 to 10 on CLARITY, SPECIFICITY and LIKELIHOOD OF GETTING HELP.

Return ONLY three numbers separated by commas. For example: "7,8,6\""""

_ENHANCE_PROMPT = """You are an assistant for SkillSwap, a skill-sharing platform. Enhance the request description below so it is clearer and more likely to get help.

Current request title: "{title}"
Current description: "{description}"

Keep the user's intent and voice, add structure, and add <placeholder> tags ONLY where important details are missing.
If the request is already specific, make minimal changes.

Return ONLY the enhanced description text, no explanations or other text."""


@dataclass(frozen=True, slots=True)
class QualityScores:
    clarity: int
    specificity: int
    likelihood: int


class AISuggestionService:
    """Client for the text-generation endpoint with local fallbacks.

    Parameters
    ----------
    api_key : Endpoint key; defaults to ``AI_API_KEY``.  Without a key every
        call goes straight to the fallback.
    api_url : Base URL; defaults to ``AI_API_URL`` or the public Gemini API.
    transport : Optional httpx transport (tests pass ``httpx.MockTransport``).
    rng : Random source for the fallbacks.
    """

    def __init__(
        self,
        cfg: SkillSwapConfig | None = None,
        *,
        api_key: str | None = None,
        api_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
        rng: random.Random | None = None,
    ) -> None:
        cfg = cfg or SkillSwapConfig()
        self.models = tuple(cfg.ai_models)
        self.timeout = cfg.ai_timeout_seconds
        self.api_key = api_key if api_key is not None else os.getenv("AI_API_KEY", "")
        self.api_url = (api_url or os.getenv("AI_API_URL") or DEFAULT_API_URL).rstrip("/")
        self._transport = transport
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _client(self) -> httpx.Client:
        transport = self._transport or httpx.HTTPTransport(retries=1)
        return httpx.Client(timeout=self.timeout, transport=transport)

    def _generate(self, prompt: str) -> str:
        """Return the first model's text reply.

        Raises
        ------
        RemoteServiceFailure
            If no key is configured or every model fails.
        """
        if not self.api_key:
            raise RemoteServiceFailure("AI_API_KEY is not configured")

        body = {"contents": [{"parts": [{"text": prompt}]}]}
        last_error = "no models configured"
        with self._client() as client:
            for model in self.models:
                try:
                    resp = client.post(
                        f"{self.api_url}/models/{model}:generateContent",
                        params={"key": self.api_key},
                        json=body,
                    )
                except httpx.HTTPError as exc:
                    logger.warning("AI model %s unreachable: %s", model, exc)
                    last_error = str(exc)
                    continue

                if resp.status_code != 200:
                    logger.warning("AI model %s returned HTTP %d", model, resp.status_code)
                    last_error = f"HTTP {resp.status_code}"
                    continue

                try:
                    text = resp.json()["candidates"][0]["content"]["parts"][0]["text"]
                except (ValueError, KeyError, IndexError, TypeError):
                    logger.warning("AI model %s returned an unexpected payload", model)
                    last_error = "unexpected payload"
                    continue

                if text and text.strip():
                    return text.strip()
                last_error = "empty reply"

        raise RemoteServiceFailure(f"All AI models failed: {last_error}")

    # ------------------------------------------------------------------
    # Fallbacks
    # ------------------------------------------------------------------
    def fallback_tags(self, title: str) -> list[str]:
        count = self._rng.randint(3, 5)
        tags: list[str] = []
        for _ in range(count):
            tag = self._rng.choice(COMMON_TAGS)
            if tag not in tags:
                tags.append(tag)

        lowered = title.lower()
        for keywords, extra in TITLE_KEYWORD_TAGS:
            if any(k in lowered for k in keywords):
                tags.append(extra)
                break
        return tags[:5]

    def fallback_tips(self) -> str:
        count = self._rng.randint(1, 2)
        return " ".join(self._rng.sample(FALLBACK_TIPS, count))

    def fallback_quality(self) -> QualityScores:
        return QualityScores(
            clarity=self._rng.randint(5, 9),
            specificity=self._rng.randint(5, 9),
            likelihood=self._rng.randint(5, 9),
        )

    @staticmethod
    def fallback_enhance(description: str) -> str:
        if len(description) < ENHANCE_MIN_LENGTH:
            return ENHANCE_TEMPLATE.format(description=description)
        return description

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def suggest_tags(self, title: str, description: str) -> list[str]:
        try:
            reply = self._generate(_TAGS_PROMPT.format(title=title, description=description))
        except RemoteServiceFailure as exc:
            logger.info("Tag suggestions fell back to local tags: %s", exc)
            return self.fallback_tags(title)

        tags = [t.strip().lower() for t in reply.split(",")]
        return [t for t in tags if t]

    def clarity_tips(self, title: str, description: str) -> str:
        try:
            return self._generate(_TIPS_PROMPT.format(title=title, description=description))
        except RemoteServiceFailure as exc:
            logger.info("Clarity tips fell back to canned tips: %s", exc)
            return self.fallback_tips()

    def analyze_quality(self, title: str, description: str) -> QualityScores:
        try:
            reply = self._generate(_QUALITY_PROMPT.format(title=title, description=description))
            scores = [int(part.strip().strip('"')) for part in reply.split(",")]
            if len(scores) != 3 or not all(1 <= s <= 10 for s in scores):
                raise RemoteServiceFailure(f"Unparseable quality reply: {reply!r}")
        except (RemoteServiceFailure, ValueError) as exc:
            logger.info("Quality analysis fell back to placeholder scores: %s", exc)
            return self.fallback_quality()
        return QualityScores(*scores)

    def enhance_description(self, title: str, description: str) -> str:
        try:
            return self._generate(_ENHANCE_PROMPT.format(title=title, description=description))
        except RemoteServiceFailure as exc:
            logger.info("Description enhancement fell back: %s", exc)
            return self.fallback_enhance(description)

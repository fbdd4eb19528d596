"""
skillswap.constants — Shared Constants & Helpers
=================================================

Single source of truth for defaults and small text helpers used by the
services and the API.
"""

from __future__ import annotations

DEFAULT_BIO = "I'm excited to start sharing and learning skills on SkillSwap!"
DEFAULT_DISPLAY_NAME = "Anonymous User"
UNKNOWN_USER_NAME = "Unknown User"
UNTITLED_REQUEST = "Untitled Request"

URGENCY_LEVELS: tuple[str, ...] = ("low", "medium", "high")
TIME_ESTIMATES: tuple[str, ...] = ("15min", "30min", "1hour", "2hours", "other")

LINK_TYPES: tuple[str, ...] = ("website", "github", "linkedin", "twitter", "portfolio", "other")

# ---------------------------------------------------------------------------
# Profile update allow list
# ---------------------------------------------------------------------------
ALLOWED_PROFILE_FIELDS: set[str] = {
    "display_name", "bio", "photo_url",
    "notifications_enabled", "profile_visible",
}

MESSAGE_PREVIEW_LENGTH = 30


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------
def preview(text: str, limit: int = MESSAGE_PREVIEW_LENGTH) -> str:
    """Shorten *text* for a notification line.

    Texts longer than *limit* keep ``limit - 3`` characters plus ``...``.
    """
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def normalize_tags(tags: list[str] | None) -> list[str]:
    """Lower-case, strip and de-duplicate tags, keeping first-seen order."""
    seen: list[str] = []
    for tag in tags or []:
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen

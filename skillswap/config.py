"""
skillswap.config — YAML Configuration Loader
=============================================

Reads ``config.yaml`` for community and tuning settings.  Secrets
(``DATABASE_URL``, ``JWT_SECRET``, ``AI_API_KEY``) stay in the environment.

Usage::

    from skillswap.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.karma_per_help)    # 5
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_AI_MODELS: tuple[str, ...] = ("gemini-1.5-flash", "gemini-1.0-pro", "gemini-pro")


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SkillSwapConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every field has a default so a missing file yields a working setup.
    """

    # Identity
    community_name: str = "SkillSwap"

    # Karma & badges
    karma_per_help: int = 5
    guru_endorsement_threshold: int = 5

    # Leaderboard
    leaderboard_size: int = 10

    # Outbox
    outbox_max_attempts: int = 5
    outbox_batch_size: int = 100

    # AI suggestions
    ai_models: tuple[str, ...] = field(default=DEFAULT_AI_MODELS)
    ai_timeout_seconds: float = 10.0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> SkillSwapConfig:
    """Read *path* and return a :class:`SkillSwapConfig` instance.

    A missing file is not an error: defaults apply.  Unknown keys are
    ignored.

    Raises
    ------
    ValueError
        If a present key cannot be converted to its expected type.
    """
    config_path = Path(path)
    if not config_path.exists():
        return SkillSwapConfig()

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = SkillSwapConfig()

    return SkillSwapConfig(
        community_name=raw.get("community_name", defaults.community_name),
        karma_per_help=int(raw.get("karma_per_help", defaults.karma_per_help)),
        guru_endorsement_threshold=int(
            raw.get("guru_endorsement_threshold", defaults.guru_endorsement_threshold)
        ),
        leaderboard_size=int(raw.get("leaderboard_size", defaults.leaderboard_size)),
        outbox_max_attempts=int(raw.get("outbox_max_attempts", defaults.outbox_max_attempts)),
        outbox_batch_size=int(raw.get("outbox_batch_size", defaults.outbox_batch_size)),
        ai_models=tuple(raw.get("ai_models") or defaults.ai_models),
        ai_timeout_seconds=float(raw.get("ai_timeout_seconds", defaults.ai_timeout_seconds)),
    )

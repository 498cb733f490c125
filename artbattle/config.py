"""
artbattle.config — YAML Configuration Loader
=============================================

**Why this file exists:**
This module reads ``config.yaml`` for deployment settings (display name,
API port, status refresh interval) and for the scoring tuning block.
Secrets, CORS origins and the database URL stay in the environment
(``.env``).

Usage::

    from artbattle.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.app_name)              # "Art Battle"
    print(cfg.scoring.like_points)   # 1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from artbattle.engine.rules import ScoringRules


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ArtBattleConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str

    # API
    api_port: int = 8000

    # Event Lifecycle Clock poll interval
    status_refresh_seconds: int = 60

    # Gameplay tuning
    scoring: ScoringRules = field(default_factory=ScoringRules)


def _load_scoring(raw: dict | None) -> ScoringRules:
    """Build :class:`ScoringRules` from the optional ``scoring:`` block.

    Missing keys fall back to the canonical defaults.
    """
    if not raw:
        return ScoringRules()
    defaults = ScoringRules()
    return ScoringRules(
        artwork_submission_points=int(
            raw.get("artwork_submission_points", defaults.artwork_submission_points)
        ),
        like_points=int(raw.get("like_points", defaults.like_points)),
        attack_points=int(raw.get("attack_points", defaults.attack_points)),
        attack_requires_counter_art=bool(
            raw.get("attack_requires_counter_art", defaults.attack_requires_counter_art)
        ),
        retry_attempts=int(raw.get("retry_attempts", defaults.retry_attempts)),
        retry_backoff_seconds=float(
            raw.get("retry_backoff_seconds", defaults.retry_backoff_seconds)
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> ArtBattleConfig:
    """Read *path* and return an :class:`ArtBattleConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If a reward in the ``scoring:`` block is negative.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return ArtBattleConfig(
        app_name=raw["app_name"],
        api_port=int(raw.get("api_port", 8000)),
        status_refresh_seconds=int(raw.get("status_refresh_seconds", 60)),
        scoring=_load_scoring(raw.get("scoring")),
    )

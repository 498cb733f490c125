"""
artbattle.engine.rules — Scoring Rules & Award Builders
========================================================

Pure calculation layer.  No DB I/O, no HTTP.

Every point change in the system is described by a :class:`PendingAward`
before it touches storage.  The builders below turn a domain fact
("artwork X was submitted", "like Y was retracted") into the exact deltas
that :func:`artbattle.database.points.update_user_points` will apply.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass

from artbattle.database.models import AwardType


# ---------------------------------------------------------------------------
# ScoringRules — tunables from config.yaml ``scoring:`` block
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ScoringRules:
    """Point values and retry policy for the scoring engine."""

    artwork_submission_points: int = 3
    like_points: int = 1
    attack_points: int = 2
    attack_requires_counter_art: bool = True

    # Points are written in a second transaction; retried this many times
    retry_attempts: int = 3
    retry_backoff_seconds: float = 0.05

    def __post_init__(self) -> None:
        for name in ("artwork_submission_points", "like_points", "attack_points"):
            if getattr(self, name) < 0:
                raise ValueError(f"scoring.{name} must be >= 0, got {getattr(self, name)}")
        if self.retry_attempts < 1:
            raise ValueError("scoring.retry_attempts must be >= 1")
        if self.retry_backoff_seconds < 0:
            raise ValueError("scoring.retry_backoff_seconds must be >= 0")


# ---------------------------------------------------------------------------
# PendingAward — one point delta, keyed for idempotency
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class PendingAward:
    """A point delta that has been decided but not necessarily applied.

    ``(award_type, source_key)`` identifies it in the ``point_awards``
    ledger, so applying the same award twice is a no-op.
    """

    user_id: uuid.UUID
    event_id: uuid.UUID
    award_type: AwardType
    source_key: str
    artwork_points: int = 0
    like_points: int = 0
    attack_points: int = 0

    @property
    def total(self) -> int:
        return self.artwork_points + self.like_points + self.attack_points

    def to_dict(self) -> dict:
        data = asdict(self)
        data["user_id"] = str(self.user_id)
        data["event_id"] = str(self.event_id)
        data["award_type"] = self.award_type.value
        return data


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
def submission_award(
    rules: ScoringRules, user_id: uuid.UUID, event_id: uuid.UUID, artwork_id: uuid.UUID
) -> PendingAward:
    """Points to the artist for submitting *artwork_id*."""
    return PendingAward(
        user_id=user_id,
        event_id=event_id,
        award_type=AwardType.ARTWORK_SUBMISSION,
        source_key=str(artwork_id),
        artwork_points=rules.artwork_submission_points,
    )


def like_award(
    rules: ScoringRules, owner_id: uuid.UUID, event_id: uuid.UUID, interaction_id: uuid.UUID
) -> PendingAward:
    """Points to the artwork owner for receiving a like."""
    return PendingAward(
        user_id=owner_id,
        event_id=event_id,
        award_type=AwardType.LIKE_RECEIVED,
        source_key=str(interaction_id),
        like_points=rules.like_points,
    )


def like_revocation(
    owner_id: uuid.UUID, event_id: uuid.UUID, interaction_id: uuid.UUID, granted: int
) -> PendingAward:
    """Undo exactly *granted* like points when a like is retracted.

    *granted* is the amount the matching ``like_received`` award applied,
    which may differ from the current ``like_points`` setting.
    """
    return PendingAward(
        user_id=owner_id,
        event_id=event_id,
        award_type=AwardType.LIKE_REVOKED,
        source_key=str(interaction_id),
        like_points=-granted,
    )


def attack_award(
    rules: ScoringRules, attacker_id: uuid.UUID, event_id: uuid.UUID, interaction_id: uuid.UUID
) -> PendingAward:
    """Points to the attacker for launching an attack."""
    return PendingAward(
        user_id=attacker_id,
        event_id=event_id,
        award_type=AwardType.ATTACK_LAUNCHED,
        source_key=str(interaction_id),
        attack_points=rules.attack_points,
    )

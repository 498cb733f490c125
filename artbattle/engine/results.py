"""
artbattle.engine.results — Operation Results & Error Taxonomy
==============================================================

Scoring operations return one of three shapes instead of raising:

- :class:`Success`        — everything was applied.
- :class:`PartialSuccess` — the primary row exists but the point write did
  not land; ``pending`` can be handed to ``retry_award``.
- :class:`Rejected`       — nothing was written; ``reason`` says why.

Internally, services raise the exceptions below and convert them into
``Rejected`` at the operation boundary.  :class:`StorageError` is the one
that escapes: the primary write failed and there is nothing to report
partially.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from artbattle.engine.rules import PendingAward


class RejectReason(enum.StrEnum):
    NOT_FOUND = "not_found"
    NOT_PARTICIPANT = "not_participant"
    EVENT_NOT_ONGOING = "event_not_ongoing"
    UPLOAD_LOCKED = "upload_locked"
    OWN_ARTWORK = "own_artwork"
    SAME_TEAM = "same_team"
    ALREADY_LIKED = "already_liked"
    ALREADY_ATTACKED = "already_attacked"
    COUNTER_ART_REQUIRED = "counter_art_required"
    INVALID_INPUT = "invalid_input"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------
class ScoringError(Exception):
    """Base class for everything the scoring layer raises."""

    reason: RejectReason = RejectReason.INVALID_INPUT

    def __init__(self, message: str, reason: RejectReason | None = None) -> None:
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class ValidationError(ScoringError):
    """Input is malformed or refers to something that does not exist."""


class NotEligible(ScoringError):
    """The actor may not perform this action right now."""


class ConflictError(NotEligible):
    """The action was already performed (duplicate attack, etc.)."""


class StorageError(ScoringError):
    """The primary write failed; nothing was persisted."""


# ---------------------------------------------------------------------------
# Result shapes
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class Success:
    data: dict[str, Any] = field(default_factory=dict)
    ok: bool = True


@dataclass(slots=True)
class PartialSuccess:
    data: dict[str, Any]
    warning: str
    pending: PendingAward
    ok: bool = True


@dataclass(slots=True)
class Rejected:
    reason: RejectReason
    message: str
    ok: bool = False

    @classmethod
    def from_error(cls, exc: ScoringError) -> Rejected:
        return cls(reason=exc.reason, message=str(exc))


Result = Success | PartialSuccess | Rejected

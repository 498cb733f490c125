"""
artbattle.engine.eligibility — Eligibility Gate
================================================

Predicates shared by the scoring services and the HTTP layer.  Pure: the
caller loads the event and team assignments and passes them in.

A missing team assignment on either side *permits* interaction.  Callers
that want membership enforced check for the Participant row themselves.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from artbattle.database.models import EventStatus
from artbattle.engine.lifecycle import ensure_utc, utcnow
from artbattle.engine.results import RejectReason

if TYPE_CHECKING:
    from artbattle.database.models import Event, Participant


def interaction_block_reason(
    actor_id: uuid.UUID,
    owner_id: uuid.UUID,
    event: Event,
    actor_team: str | None,
    owner_team: str | None,
) -> RejectReason | None:
    """Return the first reason *actor_id* may not like/attack, or ``None``."""
    if event.status != EventStatus.ONGOING:
        return RejectReason.EVENT_NOT_ONGOING
    if actor_id == owner_id:
        return RejectReason.OWN_ARTWORK
    if actor_team is not None and owner_team is not None and actor_team == owner_team:
        return RejectReason.SAME_TEAM
    return None


def can_interact(
    actor_id: uuid.UUID,
    owner_id: uuid.UUID,
    event: Event,
    actor_team: str | None,
    owner_team: str | None,
) -> bool:
    return interaction_block_reason(actor_id, owner_id, event, actor_team, owner_team) is None


def upload_block_reason(
    participant: Participant | None, event: Event, now: datetime | None = None
) -> RejectReason | None:
    """Return why *participant* may not upload artwork now, or ``None``.

    Uploads open at the midway point when the event has one.
    """
    if event.status != EventStatus.ONGOING:
        return RejectReason.EVENT_NOT_ONGOING
    if participant is None:
        return RejectReason.NOT_PARTICIPANT
    if event.midway_time is not None and ensure_utc(now or utcnow()) < ensure_utc(
        event.midway_time
    ):
        return RejectReason.UPLOAD_LOCKED
    return None


def can_upload_artwork(
    participant: Participant | None, event: Event, now: datetime | None = None
) -> bool:
    return upload_block_reason(participant, event, now) is None

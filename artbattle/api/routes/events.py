"""
artbattle.api.routes.events — Joining, scoreboard & theme
==========================================================
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import Engine

from artbattle.api.deps import CurrentUser, get_current_user, get_engine
from artbattle.api.responses import result_response
from artbattle.database.engine import get_session
from artbattle.database.models import Event, EventStatus
from artbattle.engine.lifecycle import current_theme, derive_status, ensure_utc, utcnow
from artbattle.engine.results import Success
from artbattle.services.participation_service import join_event
from artbattle.services.stats_service import get_team_scores

router = APIRouter(prefix="/events", tags=["events"])
logger = logging.getLogger(__name__)


@router.post("/{event_id}/join")
def join(
    event_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    """Join the event; the response carries the assigned team."""
    result = join_event(engine, user.user_id, event_id, user.username)
    created = isinstance(result, Success) and result.data["joined"]
    return result_response(result, 201 if created else 200)


@router.get("/{event_id}/scores")
def scores(event_id: uuid.UUID, engine: Engine = Depends(get_engine)):
    """Live team totals, computed fresh on every request."""
    board = get_team_scores(engine, event_id)
    if board is None:
        raise HTTPException(404, "Event not found")
    return board


@router.get("/{event_id}/theme")
def theme(event_id: uuid.UUID, engine: Engine = Depends(get_engine)):
    """The theme in force right now, plus whether uploads are open."""
    now = utcnow()
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            raise HTTPException(404, "Event not found")
        status = derive_status(event, now)
        midway = ensure_utc(event.midway_time) if event.midway_time else None
        return {
            "event_id": str(event.id),
            "status": status.value,
            "theme": current_theme(event, now),
            "midway_time": midway.isoformat() if midway else None,
            "uploads_open": status == EventStatus.ONGOING and (midway is None or now >= midway),
        }

"""
artbattle.services.lifecycle_service — Event Lifecycle Clock
=============================================================

Keeps the cached ``events.status`` column in step with wall-clock time.

Two entry points:

- :func:`refresh_statuses` — bulk transition for every event; run by the
  API's background loop and the admin ``refresh-status`` route.
- :func:`refresh_event_status` — lazy, single-event version called before
  eligibility checks so a stale cache never blocks a legitimate action.

Transitions only move forward (upcoming → ongoing → ended), so both are
safe to call as often as you like.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import Engine, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from artbattle.database.engine import get_session
from artbattle.database.models import Event, EventStatus
from artbattle.engine.lifecycle import derive_status, utcnow

logger = logging.getLogger(__name__)


def refresh_statuses(engine: Engine, now: datetime | None = None) -> dict[str, int]:
    """Advance every event whose window says it should have moved on.

    Returns ``{"started": N, "ended": M}``.  The second UPDATE runs after
    the first, so an upcoming event whose window has fully passed ends in
    a single call.
    """
    now = now or utcnow()
    with get_session(engine) as session:
        started = session.execute(
            update(Event)
            .where(Event.status == EventStatus.UPCOMING.value, Event.start_time <= now)
            .values(status=EventStatus.ONGOING.value)
            .execution_options(synchronize_session=False)
        ).rowcount
        ended = session.execute(
            update(Event)
            .where(Event.status == EventStatus.ONGOING.value, Event.end_time <= now)
            .values(status=EventStatus.ENDED.value)
            .execution_options(synchronize_session=False)
        ).rowcount

    if started or ended:
        logger.info("Event status refresh: %d started, %d ended", started, ended)
    return {"started": started, "ended": ended}


def refresh_event_status(
    session: Session, event: Event, now: datetime | None = None
) -> EventStatus:
    """Bring one loaded *event* up to date and return its status.

    The UPDATE is guarded on the old status so a concurrent refresh that
    got there first is not overwritten.
    """
    target = derive_status(event, now)
    if target.value != event.status:
        logger.debug("Event %s: %s → %s", event.id, event.status, target.value)
        session.execute(
            update(Event)
            .where(Event.id == event.id, Event.status == event.status)
            .values(status=target.value)
            .execution_options(synchronize_session=False)
        )
        set_committed_value(event, "status", target.value)
    return target

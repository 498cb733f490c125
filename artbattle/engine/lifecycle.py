"""
artbattle.engine.lifecycle — Event Status & Theme Rules
========================================================

Pure functions over an event's timestamps.  Persistence of the cached
``events.status`` column lives in :mod:`artbattle.services.lifecycle_service`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from artbattle.database.models import EventStatus

if TYPE_CHECKING:
    from artbattle.database.models import Event

_ORDER = {
    EventStatus.UPCOMING: 0,
    EventStatus.ONGOING: 1,
    EventStatus.ENDED: 2,
}


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def status_from_clock(start_time: datetime, end_time: datetime, now: datetime) -> EventStatus:
    """Status implied purely by the window, ignoring the cached value."""
    now = ensure_utc(now)
    if now >= ensure_utc(end_time):
        return EventStatus.ENDED
    if now >= ensure_utc(start_time):
        return EventStatus.ONGOING
    return EventStatus.UPCOMING


def derive_status(event: Event, now: datetime | None = None) -> EventStatus:
    """Return the status *event* should have at *now*.

    Never moves backwards: an event an admin already ended stays ended
    even if its ``end_time`` is later moved into the future.
    """
    current = EventStatus(event.status)
    clock = status_from_clock(event.start_time, event.end_time, now or utcnow())
    return clock if _ORDER[clock] > _ORDER[current] else current


def current_theme(event: Event, now: datetime | None = None) -> str:
    """The theme in force at *now*; the midway theme once midway has passed."""
    now = ensure_utc(now or utcnow())
    if (
        event.midway_theme
        and event.midway_time is not None
        and now >= ensure_utc(event.midway_time)
    ):
        return event.midway_theme
    return event.theme

"""
tests/test_lifecycle.py — Event Lifecycle Clock
================================================
Pure status/theme rules, the bulk and lazy refresh services, and the
background refresh loop.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from conftest import make_event
from sqlalchemy.orm import Session

from artbattle.database.models import Event, EventStatus
from artbattle.engine.lifecycle import current_theme, derive_status, ensure_utc
from artbattle.services.lifecycle_service import refresh_event_status, refresh_statuses

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _event(status="upcoming", **overrides):
    fields = {
        "status": status,
        "start_time": T0,
        "end_time": T0 + timedelta(hours=4),
        "midway_time": None,
        "theme": "Dragons",
        "midway_theme": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestDeriveStatus:
    @pytest.mark.parametrize("offset,expected", [
        (timedelta(minutes=-1), EventStatus.UPCOMING),
        (timedelta(0), EventStatus.ONGOING),
        (timedelta(hours=3, minutes=59), EventStatus.ONGOING),
        (timedelta(hours=4), EventStatus.ENDED),
    ])
    def test_window_boundaries(self, offset, expected):
        assert derive_status(_event(), T0 + offset) == expected

    def test_never_moves_backwards(self):
        event = _event(status="ended")
        assert derive_status(event, T0 + timedelta(hours=1)) == EventStatus.ENDED

    def test_naive_timestamps_treated_as_utc(self):
        event = _event(
            start_time=T0.replace(tzinfo=None),
            end_time=(T0 + timedelta(hours=1)).replace(tzinfo=None),
        )
        assert derive_status(event, T0 + timedelta(minutes=5)) == EventStatus.ONGOING


class TestCurrentTheme:
    def test_base_theme_without_midway(self):
        assert current_theme(_event(), T0 + timedelta(hours=3)) == "Dragons"

    def test_switches_at_midway(self):
        event = _event(midway_time=T0 + timedelta(hours=2), midway_theme="Dragon slayers")
        assert current_theme(event, T0 + timedelta(hours=1)) == "Dragons"
        assert current_theme(event, T0 + timedelta(hours=2)) == "Dragon slayers"

    def test_midway_time_without_theme_keeps_base(self):
        event = _event(midway_time=T0 + timedelta(hours=2))
        assert current_theme(event, T0 + timedelta(hours=3)) == "Dragons"


def test_ensure_utc_converts_offsets():
    plus_two = datetime(2026, 3, 1, 16, 0, tzinfo=timezone(timedelta(hours=2)))
    assert ensure_utc(plus_two) == datetime(2026, 3, 1, 14, 0, tzinfo=UTC)
    assert ensure_utc(plus_two).utcoffset() == timedelta(0)


class TestRefreshStatuses:
    def test_transitions_due_events(self, db_engine):
        now = datetime.now(UTC)
        starting = make_event(
            db_engine, status=EventStatus.UPCOMING,
            start=now - timedelta(minutes=1), end=now + timedelta(hours=1),
        )
        ending = make_event(
            db_engine, status=EventStatus.ONGOING,
            start=now - timedelta(hours=2), end=now - timedelta(minutes=1),
        )
        future = make_event(db_engine, status=EventStatus.UPCOMING)

        counts = refresh_statuses(db_engine, now)

        assert counts == {"started": 1, "ended": 1}
        with Session(db_engine) as session:
            assert session.get(Event, starting).status == "ongoing"
            assert session.get(Event, ending).status == "ended"
            assert session.get(Event, future).status == "upcoming"

    def test_fully_elapsed_upcoming_event_ends_in_one_call(self, db_engine):
        now = datetime.now(UTC)
        event_id = make_event(
            db_engine, status=EventStatus.UPCOMING,
            start=now - timedelta(hours=3), end=now - timedelta(hours=1),
        )
        refresh_statuses(db_engine, now)
        with Session(db_engine) as session:
            assert session.get(Event, event_id).status == "ended"

    def test_is_idempotent(self, db_engine):
        make_event(db_engine, status=EventStatus.ENDED)
        first = refresh_statuses(db_engine)
        second = refresh_statuses(db_engine)
        assert second == {"started": 0, "ended": 0}
        assert first == {"started": 0, "ended": 0}


class TestRefreshEventStatus:
    def test_updates_stale_row(self, db_engine):
        now = datetime.now(UTC)
        event_id = make_event(
            db_engine, status=EventStatus.UPCOMING,
            start=now - timedelta(minutes=5), end=now + timedelta(hours=1),
        )
        with Session(db_engine) as session:
            event = session.get(Event, event_id)
            assert refresh_event_status(session, event) == EventStatus.ONGOING
            session.commit()

        with Session(db_engine) as session:
            assert session.get(Event, event_id).status == "ongoing"


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


class TestStatusRefreshLoop:
    def test_survives_unexpected_error(self, db_engine):
        from artbattle.api import main

        calls = []

        def flaky(engine):
            calls.append(engine)
            if len(calls) == 1:
                raise TypeError("can't compare offset-naive and offset-aware datetimes")
            return {"started": 0, "ended": 0}

        async def scenario():
            with patch.object(main, "refresh_statuses", side_effect=flaky):
                task = asyncio.create_task(main.status_refresh_loop(db_engine, 0))
                for _ in range(200):
                    if len(calls) >= 2 or task.done():
                        break
                    await asyncio.sleep(0.01)
                assert not task.done()
                task.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await task

        run_async(scenario())
        assert len(calls) >= 2

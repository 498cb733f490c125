"""
artbattle.services.participation_service — Profiles & Team Membership
======================================================================

Profiles are created lazily the first time a user id shows up.  Joining
an event places the user on the smaller team (ties go to A) and never
moves them afterwards.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import Engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from artbattle.constants import TEAM_ORDER, default_username, team_name
from artbattle.database.engine import get_session
from artbattle.database.models import Event, EventStatus, Participant, Profile, Team
from artbattle.engine.results import Rejected, RejectReason, Result, Success
from artbattle.services.lifecycle_service import refresh_event_status

logger = logging.getLogger(__name__)


def ensure_profile(
    session: Session, user_id: uuid.UUID, username: str | None = None
) -> Profile:
    """Fetch or insert the Profile row for *user_id*.

    A requested *username* that is already taken falls back to the
    generated ``user_<hex>`` name.
    """
    profile = session.scalar(select(Profile).where(Profile.user_id == user_id))
    if profile is not None:
        return profile

    name = username or default_username(user_id)
    if username and session.scalar(select(Profile.id).where(Profile.username == name)):
        name = default_username(user_id)

    profile = Profile(user_id=user_id, username=name)
    session.add(profile)
    session.flush()
    logger.info("Created profile %s for user %s", name, user_id)
    return profile


def get_participant(
    session: Session, event_id: uuid.UUID, user_id: uuid.UUID
) -> Participant | None:
    return session.scalar(
        select(Participant).where(
            Participant.event_id == event_id, Participant.user_id == user_id
        )
    )


def get_team(session: Session, event_id: uuid.UUID, user_id: uuid.UUID) -> str | None:
    return session.scalar(
        select(Participant.team).where(
            Participant.event_id == event_id, Participant.user_id == user_id
        )
    )


def pick_team(session: Session, event_id: uuid.UUID) -> Team:
    """The team with fewer members; A on a tie."""
    rows = session.execute(
        select(Participant.team, func.count())
        .where(Participant.event_id == event_id)
        .group_by(Participant.team)
    ).all()
    counts = {team: 0 for team in TEAM_ORDER}
    for team, n in rows:
        counts[Team(team)] = n
    return Team.B if counts[Team.B] < counts[Team.A] else Team.A


def _joined(event: Event, team: str, *, joined: bool) -> Success:
    return Success({
        "event_id": str(event.id),
        "team": team,
        "team_name": team_name(event, team),
        "joined": joined,
    })


def join_event(
    engine: Engine,
    user_id: uuid.UUID,
    event_id: uuid.UUID,
    username: str | None = None,
) -> Result:
    """Add *user_id* to *event_id* on the balanced team.

    Idempotent: a user who already joined gets their existing team back
    with ``joined=False``.
    """
    try:
        with get_session(engine) as session:
            event = session.get(Event, event_id)
            if event is None:
                return Rejected(RejectReason.NOT_FOUND, "Event not found")
            status = refresh_event_status(session, event)

            existing = get_participant(session, event_id, user_id)
            if existing is not None:
                return _joined(event, existing.team, joined=False)
            if status == EventStatus.ENDED:
                return Rejected(RejectReason.EVENT_NOT_ONGOING, "This event has ended")

            ensure_profile(session, user_id, username)
            team = pick_team(session, event_id)
            session.add(Participant(event_id=event_id, user_id=user_id, team=team.value))
            session.flush()
            logger.info("User %s joined event %s on team %s", user_id, event_id, team.value)
            return _joined(event, team.value, joined=True)
    except IntegrityError:
        # A concurrent join for the same user won; report its row
        logger.debug("Concurrent join for user %s event %s", user_id, event_id)
        with get_session(engine) as session:
            event = session.get(Event, event_id)
            existing = get_participant(session, event_id, user_id)
            if event is None or existing is None:
                raise
            return _joined(event, existing.team, joined=False)

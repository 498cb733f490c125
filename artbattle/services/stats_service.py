"""
artbattle.services.stats_service — Aggregate read models
=========================================================

Read-only views for the scoreboard and profile pages.  Nothing here is
cached; callers that want caching do it at the edge.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import Engine, func, select

from artbattle.constants import team_name
from artbattle.database.engine import get_session
from artbattle.database.models import Artwork, Event, Participant, Profile, UserPoints
from artbattle.engine.lifecycle import current_theme, derive_status
from artbattle.services.scoring_service import compute_team_scores

logger = logging.getLogger(__name__)


def get_team_scores(engine: Engine, event_id: uuid.UUID) -> dict | None:
    """Team totals for *event_id* with display names, or ``None`` if unknown."""
    with get_session(engine) as session:
        event = session.get(Event, event_id)
        if event is None:
            return None
        names = {"A": team_name(event, "A"), "B": team_name(event, "B")}
        status = derive_status(event).value
        theme = current_theme(event)

    teams = compute_team_scores(engine, event_id)
    for row in teams:
        row["team_name"] = names[row["team"]]
    leader = None
    if teams[0]["total_points"] != teams[1]["total_points"]:
        leader = max(teams, key=lambda t: t["total_points"])["team"]
    return {
        "event_id": str(event_id),
        "status": status,
        "theme": theme,
        "teams": teams,
        "leader": leader,
    }


def get_user_stats(engine: Engine, user_id: uuid.UUID) -> dict | None:
    """Lifetime totals for *user_id* across every event, or ``None``.

    ``likes_received`` and ``attacks_received`` come from the artwork
    counters on the user's own artworks.
    """
    with get_session(engine) as session:
        profile = session.scalar(select(Profile).where(Profile.user_id == user_id))
        if profile is None:
            return None

        artworks, likes, attacks = session.execute(
            select(
                func.count(Artwork.id),
                func.coalesce(func.sum(Artwork.likes_count), 0),
                func.coalesce(func.sum(Artwork.attacks_count), 0),
            ).where(Artwork.user_id == user_id)
        ).one()

        rows = session.execute(
            select(Event, Participant.team, UserPoints)
            .join(Participant, Participant.event_id == Event.id)
            .outerjoin(
                UserPoints,
                (UserPoints.event_id == Event.id) & (UserPoints.user_id == user_id),
            )
            .where(Participant.user_id == user_id)
            .order_by(Event.start_time.desc())
        ).all()

        events = []
        for event, team, points in rows:
            events.append({
                "event_id": str(event.id),
                "title": event.title,
                "status": derive_status(event).value,
                "team": team,
                "team_name": team_name(event, team),
                "artwork_points": points.artwork_points if points else 0,
                "like_points": points.like_points if points else 0,
                "attack_points": points.attack_points if points else 0,
                "points_total": points.points_total if points else 0,
            })

        # Points can exist without a participant row (e.g. after a removal)
        total_points = session.scalar(
            select(func.coalesce(func.sum(UserPoints.points_total), 0)).where(
                UserPoints.user_id == user_id
            )
        )

        return {
            "user_id": str(user_id),
            "username": profile.username,
            "display_name": profile.display_name,
            "avatar_url": profile.avatar_url,
            "total_artworks": int(artworks),
            "likes_received": int(likes),
            "attacks_received": int(attacks),
            "total_points": int(total_points),
            "events_participated": len(events),
            "events": events,
        }

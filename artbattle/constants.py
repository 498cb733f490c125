"""
artbattle.constants — Shared Constants & Helpers
=================================================

Single source of truth for small presentation rules shared by services
and the API.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from artbattle.database.models import Team

if TYPE_CHECKING:
    from artbattle.database.models import Event

# Teams are always reported in this order, even with zero members
TEAM_ORDER: tuple[Team, ...] = (Team.A, Team.B)

DEFAULT_DISPLAY_NAME = "New User"

# Artwork / fight-art titles
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000


def default_username(user_id: uuid.UUID) -> str:
    """``user_<first 8 hex chars>`` — used when a profile is created lazily."""
    return f"user_{user_id.hex[:8]}"


def team_name(event: Event, team: str) -> str:
    """Display name of *team* within *event*."""
    return event.team_a_name if team == Team.A else event.team_b_name

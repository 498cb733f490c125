"""
artbattle.api.routes.users — Public profile stats
==================================================
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import Engine

from artbattle.api.deps import get_engine
from artbattle.services.stats_service import get_user_stats

router = APIRouter(prefix="/users", tags=["public"])


@router.get("/{user_id}/stats")
def user_stats(user_id: uuid.UUID, engine: Engine = Depends(get_engine)):
    """Totals across every event plus a per-event breakdown."""
    stats = get_user_stats(engine, user_id)
    if stats is None:
        raise HTTPException(404, "User not found")
    return stats

"""
artbattle.api.routes.admin — Maintenance endpoints (JWT‑protected)
===================================================================
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import Engine

from artbattle.api.deps import CurrentUser, get_current_admin, get_engine, get_rules
from artbattle.api.responses import result_response
from artbattle.database.models import AwardType
from artbattle.engine.rules import PendingAward, ScoringRules
from artbattle.services.lifecycle_service import refresh_statuses
from artbattle.services.reconciliation_service import run_reconciliation
from artbattle.services.scoring_service import retry_award

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class PendingAwardBody(BaseModel):
    """The ``pending`` object from a 202 response, sent back verbatim."""

    user_id: uuid.UUID
    event_id: uuid.UUID
    award_type: AwardType
    source_key: str
    artwork_points: int = 0
    like_points: int = 0
    attack_points: int = 0


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("/events/refresh-status")
def refresh_event_statuses(
    admin: CurrentUser = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
):
    """Run the lifecycle clock now instead of waiting for the next tick."""
    return refresh_statuses(engine)


@router.post("/reconcile")
def reconcile(
    admin: CurrentUser = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
    rules: ScoringRules = Depends(get_rules),
):
    """Fix counter drift, apply missing awards and rebuild user points."""
    logger.info("Reconciliation requested by %s", admin.user_id)
    return run_reconciliation(engine, rules)


@router.post("/awards/retry")
def retry_pending_award(
    body: PendingAwardBody,
    admin: CurrentUser = Depends(get_current_admin),
    engine: Engine = Depends(get_engine),
    rules: ScoringRules = Depends(get_rules),
):
    """Re-apply a pending award from an earlier partial success."""
    pending = PendingAward(**body.model_dump())
    return result_response(retry_award(engine, rules, pending))

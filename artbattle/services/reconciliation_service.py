"""
artbattle.services.reconciliation_service — Score Reconciliation
=================================================================

Periodic job that checks the denormalized numbers against the rows they
summarize and corrects drift.

How it works:
    1. **Artwork counters** — ``COUNT(*)`` of ``artwork_interactions`` per
       (artwork, type) is the truth for ``likes_count`` / ``attacks_count``.
    2. **Missing awards** — every artwork and every like/attack interaction
       should have a ledger row in ``point_awards``.  Any that don't (a
       ``PartialSuccess`` nobody retried) are awarded now.  Like awards
       whose like was retracted without a revocation are revoked.
    3. **User points** — the per-(user, event) sum of the ledger is the
       truth for ``user_points``.  Mismatched rows are rewritten.

Step 3 runs last so it sees the awards step 2 wrote.  Each correction is
computed by the database in the statement that writes it, so writes that
commit while a pass runs are not lost.  All corrections are logged for
audit.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import UTC, datetime

from sqlalchemy import Engine, case, exists, func, or_, select, update

from artbattle.database.engine import get_session
from artbattle.database.models import (
    Artwork,
    AwardType,
    Interaction,
    InteractionKind,
    PointAward,
    UserPoints,
)
from artbattle.database.points import AwardOutcome, insert_points_from_ledger
from artbattle.engine.rules import (
    PendingAward,
    ScoringRules,
    attack_award,
    like_award,
    like_revocation,
    submission_award,
)
from artbattle.services.scoring_service import apply_award

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 1. Artwork counters
# ---------------------------------------------------------------------------
def _interaction_count(kind: InteractionKind):
    return (
        select(func.count(Interaction.id))
        .where(
            Interaction.artwork_id == Artwork.id,
            Interaction.interaction_type == kind.value,
        )
        .correlate(Artwork)
        .scalar_subquery()
    )


def reconcile_artwork_counters(engine: Engine) -> dict:
    """Reset artwork counters that disagree with the interaction rows.

    The corrected value is counted by the UPDATE itself, so a like or
    attack committed while the pass runs is never overwritten.

    Returns ``{"checked": N, "corrected": M, "corrections": [...]}``.
    """
    likes = _interaction_count(InteractionKind.LIKE)
    attacks = _interaction_count(InteractionKind.ATTACK)
    drifted = or_(Artwork.likes_count != likes, Artwork.attacks_count != attacks)

    with get_session(engine) as session:
        checked = session.scalar(select(func.count(Artwork.id)))
        corrections = [
            {
                "artwork_id": str(row.id),
                "stored": {"likes": row.likes_count, "attacks": row.attacks_count},
                "actual": {"likes": row.actual_likes, "attacks": row.actual_attacks},
            }
            for row in session.execute(
                select(
                    Artwork.id,
                    Artwork.likes_count,
                    Artwork.attacks_count,
                    likes.label("actual_likes"),
                    attacks.label("actual_attacks"),
                ).where(drifted)
            )
        ]
        corrected = session.execute(
            update(Artwork)
            .where(drifted)
            .values(likes_count=likes, attacks_count=attacks)
            .execution_options(synchronize_session=False)
        ).rowcount

    if corrected:
        logger.warning(
            "Artwork counter reconciliation: corrected %d/%d artworks: %s",
            corrected, checked, corrections,
        )
    else:
        logger.info("Artwork counter reconciliation: all %d artworks match", checked)

    return {"checked": checked, "corrected": corrected, "corrections": corrections}


# ---------------------------------------------------------------------------
# 2. Missing awards
# ---------------------------------------------------------------------------
def find_missing_awards(engine: Engine, rules: ScoringRules) -> list[PendingAward]:
    """Awards the ledger should contain but doesn't."""
    missing: list[PendingAward] = []

    with get_session(engine) as session:
        recorded: dict[str, dict[str, PointAward]] = defaultdict(dict)
        for award in session.scalars(select(PointAward)):
            recorded[award.award_type][award.source_key] = award

        for artwork_id, user_id, event_id in session.execute(
            select(Artwork.id, Artwork.user_id, Artwork.event_id)
        ):
            if str(artwork_id) not in recorded[AwardType.ARTWORK_SUBMISSION]:
                missing.append(submission_award(rules, user_id, event_id, artwork_id))

        live: set[str] = set()
        for interaction_id, kind, actor_id, owner_id, event_id in session.execute(
            select(
                Interaction.id,
                Interaction.interaction_type,
                Interaction.user_id,
                Artwork.user_id,
                Artwork.event_id,
            ).join(Artwork, Artwork.id == Interaction.artwork_id)
        ):
            key = str(interaction_id)
            live.add(key)
            if kind == InteractionKind.LIKE:
                if key not in recorded[AwardType.LIKE_RECEIVED]:
                    missing.append(like_award(rules, owner_id, event_id, interaction_id))
            elif key not in recorded[AwardType.ATTACK_LAUNCHED]:
                missing.append(attack_award(rules, actor_id, event_id, interaction_id))

        for key, granted in recorded[AwardType.LIKE_RECEIVED].items():
            if key in live or key in recorded[AwardType.LIKE_REVOKED]:
                continue
            if granted.like_points:
                missing.append(
                    like_revocation(
                        granted.user_id, granted.event_id, uuid.UUID(key), granted.like_points
                    )
                )

    return missing


def reconcile_missing_awards(engine: Engine, rules: ScoringRules) -> dict:
    """Apply every award :func:`find_missing_awards` reports.

    Awards whose source disappeared since the scan are counted as
    ``skipped``.

    Returns ``{"found": N, "applied": M, "skipped": S, "failed": K,
    "awards": [...]}``.
    """
    missing = find_missing_awards(engine, rules)
    applied = skipped = failed = 0
    for award in missing:
        outcome = apply_award(engine, rules, award)
        if outcome is None:
            failed += 1
        elif outcome == AwardOutcome.APPLIED:
            applied += 1
        elif outcome == AwardOutcome.SOURCE_GONE:
            skipped += 1

    if missing:
        logger.warning(
            "Award reconciliation: %d missing, %d applied, %d skipped, %d failed",
            len(missing), applied, skipped, failed,
        )
    else:
        logger.info("Award reconciliation: ledger complete")

    return {
        "found": len(missing),
        "applied": applied,
        "skipped": skipped,
        "failed": failed,
        "awards": [a.to_dict() for a in missing],
    }


# ---------------------------------------------------------------------------
# 3. User points
# ---------------------------------------------------------------------------
def _ledger_total(column):
    total = (
        select(func.coalesce(func.sum(column), 0))
        .where(
            PointAward.user_id == UserPoints.user_id,
            PointAward.event_id == UserPoints.event_id,
        )
        .correlate(UserPoints)
        .scalar_subquery()
    )
    return case((total < 0, 0), else_=total)


def reconcile_user_points(engine: Engine) -> dict:
    """Reset ``user_points`` rows that disagree with the ledger.

    Existing rows are rewritten by one UPDATE that sums the ledger as it
    executes, so an award committed while the pass runs is kept.  Missing
    rows are created from the ledger and never replace a row another
    writer created first.

    Returns ``{"checked": N, "corrected": M, "corrections": [...]}``.
    """
    art = _ledger_total(PointAward.artwork_points)
    like = _ledger_total(PointAward.like_points)
    atk = _ledger_total(PointAward.attack_points)
    drifted = or_(
        UserPoints.artwork_points != art,
        UserPoints.like_points != like,
        UserPoints.attack_points != atk,
        UserPoints.points_total != art + like + atk,
    )
    has_row = exists().where(
        UserPoints.user_id == PointAward.user_id,
        UserPoints.event_id == PointAward.event_id,
    )

    with get_session(engine) as session:
        stored_rows = session.scalar(select(func.count(UserPoints.id)))
        corrections = [
            {
                "user_id": str(row.user_id),
                "event_id": str(row.event_id),
                "stored": [row.artwork_points, row.like_points, row.attack_points],
                "actual": [row.art, row.like, row.atk],
            }
            for row in session.execute(
                select(
                    UserPoints.user_id,
                    UserPoints.event_id,
                    UserPoints.artwork_points,
                    UserPoints.like_points,
                    UserPoints.attack_points,
                    art.label("art"),
                    like.label("like"),
                    atk.label("atk"),
                ).where(drifted)
            )
        ]

        missing = []
        for row in session.execute(
            select(
                PointAward.user_id,
                PointAward.event_id,
                func.sum(PointAward.artwork_points).label("art"),
                func.sum(PointAward.like_points).label("like"),
                func.sum(PointAward.attack_points).label("atk"),
            )
            .where(~has_row)
            .group_by(PointAward.user_id, PointAward.event_id)
        ):
            actual = [max(int(row.art), 0), max(int(row.like), 0), max(int(row.atk), 0)]
            if any(actual):
                missing.append((row.user_id, row.event_id))
                corrections.append({
                    "user_id": str(row.user_id),
                    "event_id": str(row.event_id),
                    "stored": [0, 0, 0],
                    "actual": actual,
                })

        corrected = session.execute(
            update(UserPoints)
            .where(drifted)
            .values(
                artwork_points=art,
                like_points=like,
                attack_points=atk,
                points_total=art + like + atk,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        for user_id, event_id in missing:
            if insert_points_from_ledger(session, user_id, event_id):
                corrected += 1
            else:
                logger.debug(
                    "Points row for user %s event %s appeared meanwhile", user_id, event_id
                )

        checked = stored_rows + len(missing)

    if corrected:
        logger.warning(
            "Points reconciliation: corrected %d/%d rows: %s",
            corrected, checked, corrections,
        )
    else:
        logger.info("Points reconciliation: all %d rows match", checked)

    return {"checked": checked, "corrected": corrected, "corrections": corrections}


# ---------------------------------------------------------------------------
# Full run
# ---------------------------------------------------------------------------
def run_reconciliation(engine: Engine, rules: ScoringRules) -> dict:
    """Run all three passes in order and return their summaries."""
    return {
        "artwork_counters": reconcile_artwork_counters(engine),
        "missing_awards": reconcile_missing_awards(engine, rules),
        "user_points": reconcile_user_points(engine),
        "timestamp": datetime.now(UTC).isoformat(),
    }

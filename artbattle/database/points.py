"""
artbattle.database.points — Atomic Point & Counter Writes
==========================================================

The only code that changes ``user_points`` or the artwork counters.

Every write is a single statement resolved by the database: an additive
``INSERT … ON CONFLICT DO UPDATE`` for points and an in-place
``UPDATE … SET col = col + delta`` for counters.  Ledger awards are
inserted with ``INSERT … SELECT … WHERE EXISTS`` so an award whose source
row is gone is never recorded.  Nothing here reads a value into Python
and writes it back.

All helpers take an open :class:`~sqlalchemy.orm.Session` and leave the
commit to the caller (see :func:`artbattle.database.engine.get_session`).
"""

from __future__ import annotations

import enum
import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Integer, Uuid, bindparam, case, select, text, update

from artbattle.database.models import (
    Artwork,
    AwardType,
    InteractionKind,
    PointAward,
    UserPoints,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from artbattle.engine.rules import PendingAward

logger = logging.getLogger(__name__)


def _floor0(col: str, param: str) -> str:
    return f"CASE WHEN {col} + :{param} < 0 THEN 0 ELSE {col} + :{param} END"


_UPSERT_POINTS = text(f"""
    INSERT INTO user_points
        (id, user_id, event_id, artwork_points, like_points, attack_points, points_total)
    VALUES
        (:id, :uid, :eid, :art0, :like0, :atk0, :art0 + :like0 + :atk0)
    ON CONFLICT (user_id, event_id)
    DO UPDATE SET
        artwork_points = {_floor0("user_points.artwork_points", "art")},
        like_points = {_floor0("user_points.like_points", "like")},
        attack_points = {_floor0("user_points.attack_points", "atk")},
        points_total = {_floor0("user_points.artwork_points", "art")}
                     + {_floor0("user_points.like_points", "like")}
                     + {_floor0("user_points.attack_points", "atk")},
        updated_at = CURRENT_TIMESTAMP
""").bindparams(
    bindparam("id", type_=Uuid),
    bindparam("uid", type_=Uuid),
    bindparam("eid", type_=Uuid),
    bindparam("art", type_=Integer),
    bindparam("like", type_=Integer),
    bindparam("atk", type_=Integer),
    bindparam("art0", type_=Integer),
    bindparam("like0", type_=Integer),
    bindparam("atk0", type_=Integer),
)

_AWARD_SOURCES = {
    AwardType.ARTWORK_SUBMISSION: "SELECT 1 FROM artworks WHERE id = :source_id",
    AwardType.LIKE_RECEIVED: (
        "SELECT 1 FROM artwork_interactions "
        "WHERE id = :source_id AND interaction_type = 'like'"
    ),
    AwardType.ATTACK_LAUNCHED: (
        "SELECT 1 FROM artwork_interactions "
        "WHERE id = :source_id AND interaction_type = 'attack'"
    ),
    AwardType.LIKE_REVOKED: (
        "SELECT 1 FROM point_awards "
        "WHERE award_type = 'like_received' AND source_key = :source_key"
    ),
}


def _insert_award_stmt(source_sql: str):
    # INSERT … SELECT so the source check and the ledger insert are one statement
    stmt = text(f"""
        INSERT INTO point_awards
            (id, user_id, event_id, award_type, source_key,
             artwork_points, like_points, attack_points)
        SELECT :id, :uid, :eid, :award_type, :source_key, :art, :like, :atk
        WHERE EXISTS ({source_sql})
        ON CONFLICT (award_type, source_key) DO NOTHING
    """)
    params = [
        bindparam("id", type_=Uuid),
        bindparam("uid", type_=Uuid),
        bindparam("eid", type_=Uuid),
    ]
    if ":source_id" in source_sql:
        params.append(bindparam("source_id", type_=Uuid))
    return stmt.bindparams(*params)


_INSERT_AWARD = {kind: _insert_award_stmt(sql) for kind, sql in _AWARD_SOURCES.items()}


def _ledger_sum(col: str) -> str:
    total = f"COALESCE(SUM({col}), 0)"
    return f"CASE WHEN {total} < 0 THEN 0 ELSE {total} END"


_INSERT_POINTS_FROM_LEDGER = text(f"""
    INSERT INTO user_points
        (id, user_id, event_id, artwork_points, like_points, attack_points, points_total)
    SELECT :id, :uid, :eid,
        {_ledger_sum("artwork_points")},
        {_ledger_sum("like_points")},
        {_ledger_sum("attack_points")},
        {_ledger_sum("artwork_points")}
            + {_ledger_sum("like_points")}
            + {_ledger_sum("attack_points")}
    FROM point_awards
    WHERE user_id = :uid AND event_id = :eid
    ON CONFLICT (user_id, event_id) DO NOTHING
""").bindparams(
    bindparam("id", type_=Uuid),
    bindparam("uid", type_=Uuid),
    bindparam("eid", type_=Uuid),
)


class AwardOutcome(enum.StrEnum):
    """What :func:`record_award` did with an award."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"
    SOURCE_GONE = "source_gone"


# ---------------------------------------------------------------------------
# user_points
# ---------------------------------------------------------------------------
def update_user_points(
    session: Session,
    user_id: uuid.UUID,
    event_id: uuid.UUID,
    artwork_points_delta: int = 0,
    like_points_delta: int = 0,
    attack_points_delta: int = 0,
) -> None:
    """Add the deltas to the (user, event) row, creating it on first use.

    Each component is clamped at zero and ``points_total`` is recomputed
    from the clamped components in the same statement, so the row always
    satisfies ``points_total = artwork + like + attack``.
    """
    session.execute(
        _UPSERT_POINTS,
        {
            "id": uuid.uuid4(),
            "uid": user_id,
            "eid": event_id,
            "art": artwork_points_delta,
            "like": like_points_delta,
            "atk": attack_points_delta,
            "art0": max(artwork_points_delta, 0),
            "like0": max(like_points_delta, 0),
            "atk0": max(attack_points_delta, 0),
        },
    )


def insert_points_from_ledger(
    session: Session, user_id: uuid.UUID, event_id: uuid.UUID
) -> bool:
    """Create the (user, event) row from the ledger sums if it does not exist.

    Returns ``False`` when a row was already there; it is left untouched.
    """
    result = session.execute(
        _INSERT_POINTS_FROM_LEDGER, {"id": uuid.uuid4(), "uid": user_id, "eid": event_id}
    )
    return result.rowcount > 0


def get_user_points(
    session: Session, user_id: uuid.UUID, event_id: uuid.UUID
) -> UserPoints | None:
    return session.scalar(
        select(UserPoints).where(
            UserPoints.user_id == user_id, UserPoints.event_id == event_id
        )
    )


# ---------------------------------------------------------------------------
# Artwork counters
# ---------------------------------------------------------------------------
_COUNTER_COLUMNS = {
    InteractionKind.LIKE: Artwork.likes_count,
    InteractionKind.ATTACK: Artwork.attacks_count,
}


def bump_artwork_counter(
    session: Session, artwork_id: uuid.UUID, kind: InteractionKind, delta: int
) -> None:
    """Atomically add *delta* to the artwork's like or attack counter, floor 0."""
    column = _COUNTER_COLUMNS[InteractionKind(kind)]
    new_value = column + delta
    session.execute(
        update(Artwork)
        .where(Artwork.id == artwork_id)
        .values({column.key: case((new_value < 0, 0), else_=new_value)})
        .execution_options(synchronize_session=False)
    )


# ---------------------------------------------------------------------------
# Award ledger
# ---------------------------------------------------------------------------
def record_award(session: Session, award: PendingAward) -> AwardOutcome:
    """Insert the ledger row for *award* and apply its deltas.

    The ledger row is only written while the award's source still exists
    (the artwork, the like or attack row, or for a revocation the like
    award it undoes).  Returns ``DUPLICATE`` when the award was already
    recorded and ``SOURCE_GONE`` when its source has been removed; both
    change nothing.  The ledger insert and the points upsert run in the
    caller's transaction, so they commit or roll back together.
    """
    award_type = AwardType(award.award_type)
    result = session.execute(
        _INSERT_AWARD[award_type],
        {
            "id": uuid.uuid4(),
            "uid": award.user_id,
            "eid": award.event_id,
            "award_type": award_type.value,
            "source_key": award.source_key,
            "source_id": uuid.UUID(award.source_key),
            "art": award.artwork_points,
            "like": award.like_points,
            "atk": award.attack_points,
        },
    )
    if result.rowcount == 0:
        if find_award(session, award_type.value, award.source_key) is not None:
            logger.debug(
                "Award already recorded: type=%s source=%s", award_type.value, award.source_key
            )
            return AwardOutcome.DUPLICATE
        logger.info(
            "Award source is gone, nothing recorded: type=%s source=%s",
            award_type.value, award.source_key,
        )
        return AwardOutcome.SOURCE_GONE

    update_user_points(
        session,
        award.user_id,
        award.event_id,
        artwork_points_delta=award.artwork_points,
        like_points_delta=award.like_points,
        attack_points_delta=award.attack_points,
    )
    return AwardOutcome.APPLIED


def find_award(session: Session, award_type: str, source_key: str) -> PointAward | None:
    return session.scalar(
        select(PointAward).where(
            PointAward.award_type == award_type,
            PointAward.source_key == source_key,
        )
    )

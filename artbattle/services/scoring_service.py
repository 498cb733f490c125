"""
artbattle.services.scoring_service — Scoring Engine
====================================================

Translates domain events into point deltas and applies them.

Every operation runs in two steps:

1. **Primary write** — the Interaction row (and FightArtwork, for attacks)
   plus the artwork counter, in one transaction.  If this fails the
   caller gets a ``Rejected`` result or a :class:`StorageError` and
   nothing was persisted.
2. **Point write** — the ledger row plus the ``user_points`` upsert, in a
   second transaction, retried ``rules.retry_attempts`` times.  If it
   still fails the primary row is kept and a :class:`PartialSuccess`
   carrying the :class:`PendingAward` is returned, so the caller can hand
   it to :func:`retry_award` later (reconciliation also picks it up).

Idempotency comes from the ``point_awards`` ledger, keyed by artwork id
for submissions and by interaction id for likes and attacks.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Engine, delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from artbattle.constants import MAX_TITLE_LENGTH, TEAM_ORDER
from artbattle.database.engine import get_session
from artbattle.database.models import (
    Artwork,
    AwardType,
    Event,
    EventStatus,
    FightArtwork,
    Interaction,
    InteractionKind,
    Participant,
    UserPoints,
)
from artbattle.database.points import (
    AwardOutcome,
    bump_artwork_counter,
    find_award,
    record_award,
)
from artbattle.engine.eligibility import interaction_block_reason
from artbattle.engine.results import (
    ConflictError,
    NotEligible,
    PartialSuccess,
    Rejected,
    RejectReason,
    Result,
    ScoringError,
    StorageError,
    Success,
    ValidationError,
)
from artbattle.engine.rules import (
    PendingAward,
    ScoringRules,
    attack_award,
    like_award,
    like_revocation,
    submission_award,
)
from artbattle.services.lifecycle_service import refresh_event_status
from artbattle.services.participation_service import get_team

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CounterArt:
    """Artwork uploaded alongside an attack."""

    title: str
    image_url: str


# ---------------------------------------------------------------------------
# Point application with retry
# ---------------------------------------------------------------------------
def apply_award(
    engine: Engine, rules: ScoringRules, award: PendingAward
) -> AwardOutcome | None:
    """Record *award* in its own transaction, retrying on storage errors.

    Returns the :class:`AwardOutcome`, or ``None`` once every attempt has
    failed.
    """
    for attempt in range(1, rules.retry_attempts + 1):
        try:
            with get_session(engine) as session:
                return record_award(session, award)
        except SQLAlchemyError as exc:
            logger.warning(
                "Point write failed (attempt %d/%d) type=%s source=%s: %s",
                attempt, rules.retry_attempts,
                award.award_type.value, award.source_key, exc,
            )
            if attempt < rules.retry_attempts and rules.retry_backoff_seconds:
                time.sleep(rules.retry_backoff_seconds * attempt)
    return None


def settle(
    engine: Engine, rules: ScoringRules, award: PendingAward, data: dict[str, Any]
) -> Success | PartialSuccess:
    """Apply *award* and wrap the outcome around the primary result *data*."""
    outcome = apply_award(engine, rules, award)
    if outcome is None:
        logger.warning(
            "Points pending for user %s event %s: type=%s source=%s delta=%d",
            award.user_id, award.event_id,
            award.award_type.value, award.source_key, award.total,
        )
        return PartialSuccess(
            data={**data, "points_awarded": 0},
            warning="Action saved, but points could not be updated yet",
            pending=award,
        )
    if outcome == AwardOutcome.SOURCE_GONE:
        return Success({**data, "points_awarded": 0, "already_awarded": False, "skipped": True})
    return Success({
        **data,
        "points_awarded": award.total if outcome == AwardOutcome.APPLIED else 0,
        "already_awarded": outcome == AwardOutcome.DUPLICATE,
    })


# ---------------------------------------------------------------------------
# Shared loading / gating
# ---------------------------------------------------------------------------
def _load_target(
    session: Session, actor_id: uuid.UUID, artwork_id: uuid.UUID, event_id: uuid.UUID
) -> Artwork:
    """Load *artwork_id* in *event_id* and check *actor_id* may interact with it."""
    artwork = session.get(Artwork, artwork_id)
    if artwork is None or artwork.event_id != event_id:
        raise ValidationError("Artwork not found in this event", RejectReason.NOT_FOUND)
    event = session.get(Event, event_id)
    if event is None:
        raise ValidationError("Event not found", RejectReason.NOT_FOUND)
    refresh_event_status(session, event)

    reason = interaction_block_reason(
        actor_id,
        artwork.user_id,
        event,
        get_team(session, event_id, actor_id),
        get_team(session, event_id, artwork.user_id),
    )
    if reason is not None:
        raise NotEligible(_BLOCK_MESSAGES[reason], reason)
    return artwork


_BLOCK_MESSAGES = {
    RejectReason.EVENT_NOT_ONGOING: "This event is not currently running",
    RejectReason.OWN_ARTWORK: "You cannot interact with your own artwork",
    RejectReason.SAME_TEAM: "You can only interact with the other team's artwork",
}


# ---------------------------------------------------------------------------
# Artwork submission
# ---------------------------------------------------------------------------
def award_artwork_submission(
    engine: Engine,
    rules: ScoringRules,
    user_id: uuid.UUID,
    event_id: uuid.UUID,
    artwork_id: uuid.UUID,
) -> Result:
    """Give *user_id* the submission reward for *artwork_id*, once.

    A repeat call for the same artwork is a ``Success`` with
    ``already_awarded=True`` and changes nothing.
    """
    data = {"artwork_id": str(artwork_id)}
    try:
        with get_session(engine) as session:
            if find_award(session, AwardType.ARTWORK_SUBMISSION.value, str(artwork_id)):
                return Success({**data, "points_awarded": 0, "already_awarded": True})

            artwork = session.get(Artwork, artwork_id)
            if artwork is None or artwork.event_id != event_id or artwork.user_id != user_id:
                raise ValidationError(
                    "Artwork not found for this user and event", RejectReason.NOT_FOUND
                )
            event = session.get(Event, event_id)
            if refresh_event_status(session, event) != EventStatus.ONGOING:
                raise NotEligible(
                    "This event is not currently running", RejectReason.EVENT_NOT_ONGOING
                )
            if get_team(session, event_id, user_id) is None:
                raise NotEligible(
                    "You have not joined this event", RejectReason.NOT_PARTICIPANT
                )
    except ScoringError as exc:
        return Rejected.from_error(exc)

    return settle(engine, rules, submission_award(rules, user_id, event_id, artwork_id), data)


# ---------------------------------------------------------------------------
# Likes
# ---------------------------------------------------------------------------
def _toggle_like_row(
    session: Session, user_id: uuid.UUID, artwork_id: uuid.UUID, event_id: uuid.UUID
) -> tuple[bool, uuid.UUID | None, uuid.UUID, int]:
    """Flip the like row and counter.

    Returns ``(liked, interaction_id, owner_id, granted)`` where *granted*
    is what the like award being retracted gave the owner.
    ``interaction_id`` is ``None`` when a concurrent unlike already removed
    the row.
    """
    artwork = _load_target(session, user_id, artwork_id, event_id)
    owner_id = artwork.user_id

    existing_id = session.scalar(
        select(Interaction.id).where(
            Interaction.artwork_id == artwork_id,
            Interaction.user_id == user_id,
            Interaction.interaction_type == InteractionKind.LIKE.value,
        )
    )
    if existing_id is not None:
        removed = session.execute(
            delete(Interaction)
            .where(Interaction.id == existing_id)
            .execution_options(synchronize_session=False)
        ).rowcount
        if not removed:
            return False, None, owner_id, 0
        bump_artwork_counter(session, artwork_id, InteractionKind.LIKE, -1)
        granted = find_award(session, AwardType.LIKE_RECEIVED.value, str(existing_id))
        return False, existing_id, owner_id, granted.like_points if granted else 0

    interaction = Interaction(
        id=uuid.uuid4(),
        artwork_id=artwork_id,
        user_id=user_id,
        interaction_type=InteractionKind.LIKE.value,
    )
    session.add(interaction)
    session.flush()
    bump_artwork_counter(session, artwork_id, InteractionKind.LIKE, 1)
    return True, interaction.id, owner_id, 0


def toggle_like(
    engine: Engine,
    rules: ScoringRules,
    user_id: uuid.UUID,
    artwork_id: uuid.UUID,
    event_id: uuid.UUID,
) -> Result:
    """Like *artwork_id*, or retract the like if it already exists.

    Liking gives the artwork's owner ``rules.like_points``.  Unliking
    revokes exactly what the matching like award granted; if that award
    never landed there is nothing to revoke.
    """
    try:
        with get_session(engine) as session:
            liked, interaction_id, owner_id, granted = _toggle_like_row(
                session, user_id, artwork_id, event_id
            )
    except ScoringError as exc:
        return Rejected.from_error(exc)
    except IntegrityError:
        logger.debug("Concurrent like for user %s artwork %s", user_id, artwork_id)
        return Rejected(RejectReason.ALREADY_LIKED, "You already liked this artwork")
    except SQLAlchemyError as exc:
        raise StorageError(f"Could not update like: {exc}") from exc

    data = {"liked": liked, "artwork_id": str(artwork_id)}
    if interaction_id is None:
        return Success({**data, "points_awarded": 0, "already_awarded": False})

    if liked:
        award = like_award(rules, owner_id, event_id, interaction_id)
        logger.info("User %s liked artwork %s", user_id, artwork_id)
    else:
        logger.info("User %s unliked artwork %s", user_id, artwork_id)
        if not granted:
            return Success({**data, "points_awarded": 0, "already_awarded": False})
        award = like_revocation(owner_id, event_id, interaction_id, granted)

    return settle(engine, rules, award, data)


# ---------------------------------------------------------------------------
# Attacks
# ---------------------------------------------------------------------------
def _validate_counter_art(rules: ScoringRules, counter_art: CounterArt | None) -> None:
    if counter_art is None:
        if rules.attack_requires_counter_art:
            raise ValidationError(
                "An attack needs a counter artwork", RejectReason.COUNTER_ART_REQUIRED
            )
        return
    if not counter_art.title.strip():
        raise ValidationError("Counter artwork needs a title")
    if len(counter_art.title.strip()) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Counter artwork title is longer than {MAX_TITLE_LENGTH} characters"
        )
    if not counter_art.image_url.strip():
        raise ValidationError("Counter artwork needs an image")


def register_attack(
    engine: Engine,
    rules: ScoringRules,
    attacker_id: uuid.UUID,
    target_artwork_id: uuid.UUID,
    event_id: uuid.UUID,
    counter_art: CounterArt | None = None,
) -> Result:
    """Attack *target_artwork_id* once; the attacker earns ``rules.attack_points``.

    A second attack on the same artwork is ``Rejected(ALREADY_ATTACKED)``
    and awards nothing.
    """
    try:
        _validate_counter_art(rules, counter_art)
        with get_session(engine) as session:
            _load_target(session, attacker_id, target_artwork_id, event_id)
            already = session.scalar(
                select(Interaction.id).where(
                    Interaction.artwork_id == target_artwork_id,
                    Interaction.user_id == attacker_id,
                    Interaction.interaction_type == InteractionKind.ATTACK.value,
                )
            )
            if already is not None:
                raise ConflictError(
                    "You already attacked this artwork", RejectReason.ALREADY_ATTACKED
                )

            interaction = Interaction(
                id=uuid.uuid4(),
                artwork_id=target_artwork_id,
                user_id=attacker_id,
                interaction_type=InteractionKind.ATTACK.value,
            )
            session.add(interaction)
            fight_id = None
            if counter_art is not None:
                fight = FightArtwork(
                    id=uuid.uuid4(),
                    attacker_id=attacker_id,
                    target_artwork_id=target_artwork_id,
                    title=counter_art.title.strip(),
                    image_url=counter_art.image_url,
                )
                session.add(fight)
                fight_id = fight.id
            session.flush()
            bump_artwork_counter(session, target_artwork_id, InteractionKind.ATTACK, 1)
            interaction_id = interaction.id
    except ScoringError as exc:
        return Rejected.from_error(exc)
    except IntegrityError:
        logger.debug("Concurrent attack for user %s artwork %s", attacker_id, target_artwork_id)
        return Rejected(RejectReason.ALREADY_ATTACKED, "You already attacked this artwork")
    except SQLAlchemyError as exc:
        raise StorageError(f"Could not record attack: {exc}") from exc

    logger.info("User %s attacked artwork %s", attacker_id, target_artwork_id)
    data = {
        "attacked": True,
        "artwork_id": str(target_artwork_id),
        "interaction_id": str(interaction_id),
        "fight_artwork_id": str(fight_id) if fight_id else None,
    }
    return settle(engine, rules, attack_award(rules, attacker_id, event_id, interaction_id), data)


# ---------------------------------------------------------------------------
# Retry of pending awards
# ---------------------------------------------------------------------------
def retry_award(engine: Engine, rules: ScoringRules, pending: PendingAward) -> Result:
    """Re-apply a :class:`PendingAward` from an earlier ``PartialSuccess``.

    Safe to call any number of times.  An award whose source has since been
    removed, such as a like that was retracted, is skipped rather than
    applied.
    """
    data = {"award_type": pending.award_type.value, "source_key": pending.source_key}
    try:
        uuid.UUID(pending.source_key)
    except ValueError:
        return Rejected(RejectReason.INVALID_INPUT, "Malformed award source key")
    return settle(engine, rules, pending, data)


# ---------------------------------------------------------------------------
# Team scores
# ---------------------------------------------------------------------------
def compute_team_scores(engine: Engine, event_id: uuid.UUID) -> list[dict[str, Any]]:
    """Sum ``points_total`` per team, fresh from Participant ⟕ UserPoints.

    Both teams are always returned; members with no points row count 0.
    """
    with get_session(engine) as session:
        rows = session.execute(
            select(
                Participant.team,
                func.count(Participant.id),
                func.coalesce(func.sum(UserPoints.points_total), 0),
            )
            .outerjoin(
                UserPoints,
                (UserPoints.user_id == Participant.user_id)
                & (UserPoints.event_id == Participant.event_id),
            )
            .where(Participant.event_id == event_id)
            .group_by(Participant.team)
        ).all()

    by_team = {team: (int(members), int(total)) for team, members, total in rows}
    return [
        {
            "team": team.value,
            "total_points": by_team.get(team.value, (0, 0))[1],
            "member_count": by_team.get(team.value, (0, 0))[0],
        }
        for team in TEAM_ORDER
    ]

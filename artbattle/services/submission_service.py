"""
artbattle.services.submission_service — Artwork & Attack Entry Points
======================================================================

What the HTTP layer calls once an image is already in the blob store.
The image URL is passed in, so a failing row insert can only leave an
orphaned file behind, never a row pointing at a missing image.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from artbattle.constants import MAX_DESCRIPTION_LENGTH, MAX_TITLE_LENGTH
from artbattle.database.engine import get_session
from artbattle.database.models import Artwork, Event
from artbattle.engine.eligibility import upload_block_reason
from artbattle.engine.results import (
    NotEligible,
    Rejected,
    RejectReason,
    Result,
    ScoringError,
    StorageError,
    ValidationError,
)
from artbattle.engine.rules import ScoringRules, submission_award
from artbattle.services.lifecycle_service import refresh_event_status
from artbattle.services.participation_service import get_participant
from artbattle.services.scoring_service import CounterArt, register_attack, settle

logger = logging.getLogger(__name__)

_UPLOAD_MESSAGES = {
    RejectReason.EVENT_NOT_ONGOING: "This event is not currently running",
    RejectReason.NOT_PARTICIPANT: "Join the event before submitting artwork",
    RejectReason.UPLOAD_LOCKED: "Submissions open at the event's midway point",
}


def _validate_title(title: str, description: str | None, image_url: str) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title is longer than {MAX_TITLE_LENGTH} characters")
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description is longer than {MAX_DESCRIPTION_LENGTH} characters"
        )
    if not (image_url or "").strip():
        raise ValidationError("Image is required")
    return title


def submit_artwork(
    engine: Engine,
    rules: ScoringRules,
    user_id: uuid.UUID,
    event_id: uuid.UUID,
    title: str,
    description: str | None,
    image_url: str,
) -> Result:
    """Create the Artwork row, then give its author the submission reward."""
    try:
        title = _validate_title(title, description, image_url)
        with get_session(engine) as session:
            event = session.get(Event, event_id)
            if event is None:
                raise ValidationError("Event not found", RejectReason.NOT_FOUND)
            refresh_event_status(session, event)
            reason = upload_block_reason(get_participant(session, event_id, user_id), event)
            if reason is not None:
                raise NotEligible(_UPLOAD_MESSAGES[reason], reason)

            artwork = Artwork(
                id=uuid.uuid4(),
                event_id=event_id,
                user_id=user_id,
                title=title,
                description=description or None,
                image_url=image_url,
            )
            session.add(artwork)
            session.flush()
            artwork_id = artwork.id
    except ScoringError as exc:
        return Rejected.from_error(exc)
    except SQLAlchemyError as exc:
        raise StorageError(f"Could not save artwork: {exc}") from exc

    logger.info("User %s submitted artwork %s to event %s", user_id, artwork_id, event_id)
    return settle(
        engine,
        rules,
        submission_award(rules, user_id, event_id, artwork_id),
        {"artwork_id": str(artwork_id), "image_url": image_url},
    )


def launch_attack(
    engine: Engine,
    rules: ScoringRules,
    attacker_id: uuid.UUID,
    target_artwork_id: uuid.UUID,
    event_id: uuid.UUID,
    fight_title: str | None = None,
    fight_image_url: str | None = None,
) -> Result:
    """Attack with optional counter art; see :func:`register_attack`."""
    counter_art = None
    if fight_title or fight_image_url:
        counter_art = CounterArt(title=fight_title or "", image_url=fight_image_url or "")
    return register_attack(
        engine, rules, attacker_id, target_artwork_id, event_id, counter_art
    )

"""
artbattle.api.routes.artworks — Submissions, likes & attacks
=============================================================

Uploads write the image first and the row second.  If the row is then
rejected the image is deleted again; if the row insert fails outright
the image is left behind as a harmless orphan.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy import Engine

from artbattle.api.deps import CurrentUser, get_current_user, get_engine, get_rules
from artbattle.api.responses import result_response
from artbattle.database.engine import run_db
from artbattle.engine.results import Rejected
from artbattle.engine.rules import ScoringRules
from artbattle.services.scoring_service import toggle_like
from artbattle.services.submission_service import launch_attack, submit_artwork
from artbattle.services.upload_service import delete_upload, save_upload

router = APIRouter(prefix="/events", tags=["artworks"])
logger = logging.getLogger(__name__)


async def _store_image(file: UploadFile) -> str:
    content = await file.read()
    try:
        return await save_upload(file.filename or "upload.png", content, file.content_type)
    except ValueError as exc:
        raise HTTPException(422, str(exc)) from exc
    except OSError as exc:
        logger.error("Blob store write failed: %s", exc)
        raise HTTPException(503, "Image storage is unavailable") from exc


@router.post("/{event_id}/artworks")
async def create_artwork(
    event_id: uuid.UUID,
    title: str = Form(...),
    description: str | None = Form(None),
    file: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    rules: ScoringRules = Depends(get_rules),
):
    """Upload an image and submit it as artwork; earns the submission reward."""
    image_url = await _store_image(file)
    result = await run_db(
        submit_artwork, engine, rules, user.user_id, event_id, title, description, image_url
    )
    if isinstance(result, Rejected):
        delete_upload(image_url)
    return result_response(result, 201)


@router.post("/{event_id}/artworks/{artwork_id}/like")
def like_artwork(
    event_id: uuid.UUID,
    artwork_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    rules: ScoringRules = Depends(get_rules),
):
    """Toggle the caller's like; ``liked`` in the response is the new state."""
    return result_response(toggle_like(engine, rules, user.user_id, artwork_id, event_id))


@router.post("/{event_id}/artworks/{artwork_id}/attack")
async def attack_artwork(
    event_id: uuid.UUID,
    artwork_id: uuid.UUID,
    fight_title: str | None = Form(None),
    file: UploadFile | None = File(None),
    user: CurrentUser = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    rules: ScoringRules = Depends(get_rules),
):
    """Attack an artwork, optionally with an uploaded counter artwork."""
    image_url = await _store_image(file) if file is not None else None
    result = await run_db(
        launch_attack, engine, rules, user.user_id, artwork_id, event_id,
        fight_title, image_url,
    )
    if isinstance(result, Rejected) and image_url:
        delete_upload(image_url)
    return result_response(result, 201)

"""
artbattle.services.upload_service — Blob store for artwork images
==================================================================

Artwork and counter-art images are stored in a configurable ``uploads/``
directory (a Docker volume in production) and served via a static-file
mount at ``/api/uploads``.

Images are always written *before* the database row that references them.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(os.getenv("ARTBATTLE_UPLOAD_DIR", "uploads"))
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
ALLOWED_MIME_TYPES = {
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
}


def ensure_upload_dir() -> None:
    """Create the upload directory if it doesn't exist."""
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)


async def save_upload(filename: str, content: bytes, content_type: str | None = None) -> str:
    """Validate and persist an uploaded image.

    Returns
    -------
    str
        URL path to the saved file (e.g. ``/api/uploads/abc123.png``).

    Raises
    ------
    ValueError
        If validation fails (empty, wrong type, too large).
    OSError
        If the file could not be written.
    """
    if not content:
        raise ValueError("File is empty")
    if len(content) > MAX_FILE_SIZE:
        raise ValueError(
            f"File too large: {len(content)} bytes (max {MAX_FILE_SIZE // 1024 // 1024}MB)"
        )

    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValueError(
            f"File type not allowed: {ext!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    if content_type and content_type not in ALLOWED_MIME_TYPES:
        raise ValueError(
            f"MIME type not allowed: {content_type!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_MIME_TYPES))}"
        )

    unique_name = f"{uuid.uuid4().hex}{ext}"
    ensure_upload_dir()
    # Blocking file I/O goes to a thread so the event loop stays free
    await asyncio.to_thread((UPLOAD_DIR / unique_name).write_bytes, content)
    logger.debug("Stored upload %s (%d bytes)", unique_name, len(content))

    return f"/api/uploads/{unique_name}"


def delete_upload(url_path: str) -> bool:
    """Remove an uploaded file by its URL path.

    Returns True if the file existed and was deleted.
    """
    if not url_path.startswith("/api/uploads/"):
        return False
    filepath = UPLOAD_DIR / url_path.rsplit("/", 1)[-1]
    if filepath.exists() and filepath.is_file():
        filepath.unlink()
        return True
    return False

"""
artbattle.__main__ — Entry point for ``python -m artbattle``
===========================================================

Wiring:
1. Load .env (secrets, DATABASE_URL).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Serve the FastAPI app with uvicorn (blocking).

Run with::

    uv run python -m artbattle
"""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from artbattle.config import load_config
from artbattle.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("artbattle")


def main() -> None:
    """Bootstrap and run the Art Battle API."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    cfg = load_config()
    logger.info("Config loaded — %s", cfg.app_name)

    # 3. Database.
    init_db(create_db_engine())

    # 4. Serve (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting API on port %d…", cfg.api_port)
    uvicorn.run("artbattle.api.main:app", host="0.0.0.0", port=cfg.api_port, log_config=None)


if __name__ == "__main__":
    main()

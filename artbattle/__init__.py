"""
Art Battle — Team Art Battles with Live Scoring
=================================================
Users join timed two-team events, submit artwork, and like or attack
the other team's pieces.  Every action is scored, and team totals are the
sum of their members' points.

Package layout::

    artbattle/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Shared constants + small helpers
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── points.py      # Atomic upserts / counter bumps (the one write path)
    ├── engine/
    │   ├── results.py     # Success / PartialSuccess / Rejected + error taxonomy
    │   ├── rules.py       # ScoringRules + PendingAward construction
    │   ├── lifecycle.py   # Event status + theme derivation
    │   └── eligibility.py # can_interact / can_upload_artwork
    ├── services/
    │   ├── scoring_service.py        # Awards, likes, attacks, team scores
    │   ├── submission_service.py     # View-layer entry points
    │   ├── participation_service.py  # Profiles + balanced team joins
    │   ├── lifecycle_service.py      # Bulk status refresh
    │   ├── stats_service.py          # Aggregate read models
    │   ├── reconciliation_service.py # Counter / ledger / points repair
    │   └── upload_service.py         # Local blob store
    └── api/
        ├── main.py        # FastAPI app + status refresh loop
        ├── deps.py        # Engine, config, JWT identity
        └── routes/        # Events, artworks, users, admin
"""

__version__ = "0.1.0"

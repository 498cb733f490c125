"""Initial Art Battle schema

Revision ID: 5c2e8a1f7b3d
Revises:
Create Date: 2026-10-19 10:12:31.418206

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c2e8a1f7b3d'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create events, profiles, participants, artworks, interactions,
    fight_artworks, user_points and the point_awards ledger."""

    # --- events ---
    op.create_table(
        "events",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("theme", sa.String(200), nullable=False),
        sa.Column("midway_theme", sa.String(200), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("midway_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("team_a_name", sa.String(100), nullable=False),
        sa.Column("team_b_name", sa.String(100), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="upcoming"),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('upcoming', 'ongoing', 'ended')", name="ck_events_status"
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_events_window"),
    )
    op.create_index("ix_events_status_start", "events", ["status", "start_time"])

    # --- profiles ---
    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.Uuid, nullable=False, unique=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=False, server_default="New User"),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- event_participants ---
    op.create_table(
        "event_participants",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "event_id", sa.Uuid,
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "user_id", sa.Uuid,
            sa.ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("team", sa.String(1), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_participants_event_user"),
        sa.CheckConstraint("team IN ('A', 'B')", name="ck_event_participants_team"),
    )
    op.create_index(
        "ix_event_participants_event_team", "event_participants", ["event_id", "team"]
    )

    # --- artworks ---
    op.create_table(
        "artworks",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "event_id", sa.Uuid,
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "user_id", sa.Uuid,
            sa.ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("image_url", sa.String(500), nullable=False),
        sa.Column("likes_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("attacks_count", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("likes_count >= 0", name="ck_artworks_likes_nonneg"),
        sa.CheckConstraint("attacks_count >= 0", name="ck_artworks_attacks_nonneg"),
    )
    op.create_index("ix_artworks_event_time", "artworks", ["event_id", "created_at"])
    op.create_index("ix_artworks_user", "artworks", ["user_id"])

    # --- artwork_interactions ---
    op.create_table(
        "artwork_interactions",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "artwork_id", sa.Uuid,
            sa.ForeignKey("artworks.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("user_id", sa.Uuid, nullable=False),
        sa.Column("interaction_type", sa.String(10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "artwork_id", "user_id", "interaction_type",
            name="uq_artwork_interactions_once",
        ),
        sa.CheckConstraint(
            "interaction_type IN ('like', 'attack')",
            name="ck_artwork_interactions_type",
        ),
    )
    op.create_index("ix_artwork_interactions_user", "artwork_interactions", ["user_id"])

    # --- fight_artworks ---
    op.create_table(
        "fight_artworks",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("attacker_id", sa.Uuid, nullable=False),
        sa.Column(
            "target_artwork_id", sa.Uuid,
            sa.ForeignKey("artworks.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("image_url", sa.String(500), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "attacker_id", "target_artwork_id", name="uq_fight_artworks_attacker_target"
        ),
    )

    # --- user_points ---
    op.create_table(
        "user_points",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.Uuid, nullable=False),
        sa.Column(
            "event_id", sa.Uuid,
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("artwork_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("like_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("attack_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("points_total", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "event_id", name="uq_user_points_user_event"),
        sa.CheckConstraint(
            "points_total = artwork_points + like_points + attack_points",
            name="ck_user_points_total",
        ),
        sa.CheckConstraint(
            "artwork_points >= 0 AND like_points >= 0 AND attack_points >= 0",
            name="ck_user_points_nonneg",
        ),
    )
    op.create_index(
        "ix_user_points_event_total", "user_points", ["event_id", "points_total"]
    )

    # --- point_awards ---
    op.create_table(
        "point_awards",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.Uuid, nullable=False),
        sa.Column(
            "event_id", sa.Uuid,
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("award_type", sa.String(30), nullable=False),
        sa.Column("source_key", sa.String(64), nullable=False),
        sa.Column("artwork_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("like_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("attack_points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("award_type", "source_key", name="uq_point_awards_source"),
    )
    op.create_index("ix_point_awards_user_event", "point_awards", ["user_id", "event_id"])


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    op.drop_index("ix_point_awards_user_event", table_name="point_awards")
    op.drop_table("point_awards")
    op.drop_index("ix_user_points_event_total", table_name="user_points")
    op.drop_table("user_points")
    op.drop_table("fight_artworks")
    op.drop_index("ix_artwork_interactions_user", table_name="artwork_interactions")
    op.drop_table("artwork_interactions")
    op.drop_index("ix_artworks_user", table_name="artworks")
    op.drop_index("ix_artworks_event_time", table_name="artworks")
    op.drop_table("artworks")
    op.drop_index("ix_event_participants_event_team", table_name="event_participants")
    op.drop_table("event_participants")
    op.drop_table("profiles")
    op.drop_index("ix_events_status_start", table_name="events")
    op.drop_table("events")

"""
artbattle.database.models — SQLAlchemy 2.0 Data Models
=======================================================

Tables:
- events               — Timed two-team battles with a cached status
- profiles             — One row per identity-provider user
- event_participants   — Team membership, one row per (event, user)
- artworks             — Submissions with denormalized like/attack counters
- artwork_interactions — Likes and attacks; existence is the source of truth
- fight_artworks       — Counter-art uploaded with an attack
- user_points          — Per-(user, event) score breakdown
- point_awards         — Idempotency ledger of every applied point delta
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Art Battle ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class EventStatus(enum.StrEnum):
    """Lifecycle of an event.  Transitions only move forward."""
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    ENDED = "ended"


class Team(enum.StrEnum):
    A = "A"
    B = "B"


class InteractionKind(enum.StrEnum):
    """What a user did to someone else's artwork."""
    LIKE = "like"
    ATTACK = "attack"


class AwardType(enum.StrEnum):
    """Reasons a point delta was written to ``point_awards``."""
    ARTWORK_SUBMISSION = "artwork_submission"
    LIKE_RECEIVED = "like_received"
    LIKE_REVOKED = "like_revoked"
    ATTACK_LAUNCHED = "attack_launched"


# ---------------------------------------------------------------------------
# Events — competitive windows
# ---------------------------------------------------------------------------
class Event(Base):
    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    theme: Mapped[str] = mapped_column(String(200), nullable=False)
    midway_theme: Mapped[str | None] = mapped_column(String(200), default=None)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    midway_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    team_a_name: Mapped[str] = mapped_column(String(100), nullable=False)
    team_b_name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=EventStatus.UPCOMING.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    participants: Mapped[list[Participant]] = relationship(
        back_populates="event", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('upcoming', 'ongoing', 'ended')", name="ck_events_status"
        ),
        CheckConstraint("end_time > start_time", name="ck_events_window"),
        Index("ix_events_status_start", "status", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Event id={self.id} title={self.title!r} status={self.status}>"


# ---------------------------------------------------------------------------
# Profiles — one row per identity-provider user
# ---------------------------------------------------------------------------
class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False, default="New User")
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Profile user={self.user_id} username={self.username!r}>"


# ---------------------------------------------------------------------------
# Participants — team membership per event
# ---------------------------------------------------------------------------
class Participant(Base):
    __tablename__ = "event_participants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False
    )
    team: Mapped[str] = mapped_column(String(1), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    event: Mapped[Event] = relationship(back_populates="participants")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_participants_event_user"),
        CheckConstraint("team IN ('A', 'B')", name="ck_event_participants_team"),
        Index("ix_event_participants_event_team", "event_id", "team"),
    )

    def __repr__(self) -> str:
        return f"<Participant event={self.event_id} user={self.user_id} team={self.team}>"


# ---------------------------------------------------------------------------
# Artworks — submissions with denormalized counters
# ---------------------------------------------------------------------------
class Artwork(Base):
    """An artwork submitted to an event.

    ``likes_count`` and ``attacks_count`` are a cache of the number of
    ``artwork_interactions`` rows of each type.  They only move through
    :func:`artbattle.database.points.bump_artwork_counter`.
    """
    __tablename__ = "artworks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.user_id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    image_url: Mapped[str] = mapped_column(String(500), nullable=False)
    likes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attacks_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    interactions: Mapped[list[Interaction]] = relationship(
        back_populates="artwork", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("likes_count >= 0", name="ck_artworks_likes_nonneg"),
        CheckConstraint("attacks_count >= 0", name="ck_artworks_attacks_nonneg"),
        Index("ix_artworks_event_time", "event_id", "created_at"),
        Index("ix_artworks_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Artwork id={self.id} title={self.title!r} likes={self.likes_count}>"


# ---------------------------------------------------------------------------
# Interactions — likes and attacks
# ---------------------------------------------------------------------------
class Interaction(Base):
    __tablename__ = "artwork_interactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    artwork_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("artworks.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    interaction_type: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    artwork: Mapped[Artwork] = relationship(back_populates="interactions")

    __table_args__ = (
        # One like and one attack per (artwork, user)
        UniqueConstraint(
            "artwork_id", "user_id", "interaction_type",
            name="uq_artwork_interactions_once",
        ),
        CheckConstraint(
            "interaction_type IN ('like', 'attack')",
            name="ck_artwork_interactions_type",
        ),
        Index("ix_artwork_interactions_user", "user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Interaction artwork={self.artwork_id} user={self.user_id} "
            f"type={self.interaction_type}>"
        )


# ---------------------------------------------------------------------------
# FightArtwork — counter-art attached to an attack
# ---------------------------------------------------------------------------
class FightArtwork(Base):
    __tablename__ = "fight_artworks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    attacker_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    target_artwork_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("artworks.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    image_url: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "attacker_id", "target_artwork_id", name="uq_fight_artworks_attacker_target"
        ),
    )

    def __repr__(self) -> str:
        return f"<FightArtwork attacker={self.attacker_id} target={self.target_artwork_id}>"


# ---------------------------------------------------------------------------
# UserPoints — per-(user, event) score breakdown
# ---------------------------------------------------------------------------
class UserPoints(Base):
    """Score breakdown for one user in one event.

    Only written by :func:`artbattle.database.points.update_user_points`.
    The CHECK constraints make the total invariant a storage guarantee.
    """
    __tablename__ = "user_points"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    artwork_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    like_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attack_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_user_points_user_event"),
        CheckConstraint(
            "points_total = artwork_points + like_points + attack_points",
            name="ck_user_points_total",
        ),
        CheckConstraint(
            "artwork_points >= 0 AND like_points >= 0 AND attack_points >= 0",
            name="ck_user_points_nonneg",
        ),
        Index("ix_user_points_event_total", "event_id", "points_total"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserPoints user={self.user_id} event={self.event_id} "
            f"total={self.points_total}>"
        )


# ---------------------------------------------------------------------------
# PointAward — idempotency ledger
# ---------------------------------------------------------------------------
class PointAward(Base):
    """One row per point delta applied to ``user_points``.

    ``(award_type, source_key)`` is unique: the artwork id for submission
    rewards, the interaction id for like/attack rewards and revocations.
    """
    __tablename__ = "point_awards"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    award_type: Mapped[str] = mapped_column(String(30), nullable=False)
    source_key: Mapped[str] = mapped_column(String(64), nullable=False)
    artwork_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    like_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attack_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("award_type", "source_key", name="uq_point_awards_source"),
        Index("ix_point_awards_user_event", "user_id", "event_id"),
    )

    def __repr__(self) -> str:
        return f"<PointAward type={self.award_type} source={self.source_key}>"

"""SQLAlchemy ORM models for the Paddock database.

Five tables: events, check_in_statuses, guild_settings, roster_sets,
roster_teams. Discord snowflakes are stored as strings.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class EventRow(Base):
    """One posted check-in: a race round in a league season."""

    __tablename__ = "events"

    unique_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    server_name: Mapped[str] = mapped_column(String(100), nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    # Databases from before multi-channel events only have channel_id;
    # init_schema copies it across.
    channel_ids: Mapped[list] = mapped_column(JSON, default=list, server_default=text("'[]'"))
    date_time: Mapped[str] = mapped_column(String(40), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    roles: Mapped[list] = mapped_column(JSON, default=list)
    track_name: Mapped[str] = mapped_column(String(100), nullable=False)
    track_image: Mapped[str] = mapped_column(Text, default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    message_channel_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    message_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime, default=_now)


class CheckInStatusRow(Base):
    """Checked-in members of one team for one event, stored as a JSON list."""

    __tablename__ = "check_in_statuses"

    unique_id: Mapped[str] = mapped_column(
        ForeignKey("events.unique_id", ondelete="CASCADE"), primary_key=True
    )
    team: Mapped[str] = mapped_column(String(20), primary_key=True)
    members: Mapped[list] = mapped_column(JSON, default=list)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, default=_now, onupdate=_now)


class GuildSettingsRow(Base):
    __tablename__ = "guild_settings"

    guild_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    notification_channel_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    manager_role_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)


class RosterSetRow(Base):
    __tablename__ = "roster_sets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    teams: Mapped[list[RosterTeamRow]] = relationship(
        back_populates="roster_set",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_roster_sets_guild_id", "guild_id"),)


class RosterTeamRow(Base):
    __tablename__ = "roster_teams"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    roster_set_id: Mapped[str] = mapped_column(
        ForeignKey("roster_sets.id", ondelete="CASCADE"), nullable=False
    )
    team_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role_id: Mapped[str] = mapped_column(String(32), nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    message_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_special: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    roster_set: Mapped[RosterSetRow] = relationship(back_populates="teams")

    __table_args__ = (
        Index("ix_roster_teams_roster_set_id", "roster_set_id"),
        Index("ix_roster_teams_role_id", "role_id"),
    )

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes on both sides of the database.

    SQLite keeps no offset, so values are stored as naive UTC and handed
    back with ``tzinfo=timezone.utc``. Naive values passed in are taken
    to be UTC already.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    pass


class DBWorld(Base):
    __tablename__ = "worlds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    # Back-reference to the active arc, not ownership; no FK so the
    # worlds <-> world_arcs pair stays acyclic.
    current_arc_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    arcs: Mapped[list[DBArc]] = relationship(back_populates="world")


class DBArc(Base):
    __tablename__ = "world_arcs"
    __table_args__ = (
        UniqueConstraint("world_id", "arc_number", name="uq_world_arcs_world_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    world_id: Mapped[int] = mapped_column(ForeignKey("worlds.id"), nullable=False)
    arc_number: Mapped[int] = mapped_column(Integer, nullable=False)
    story_name: Mapped[str] = mapped_column(String(255), nullable=False)
    story_idea: Mapped[str] = mapped_column(Text, default="")
    detailed_description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default="active")
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    world: Mapped[DBWorld] = relationship(back_populates="arcs")
    beats: Mapped[list[DBBeat]] = relationship(back_populates="arc")


class DBBeat(Base):
    __tablename__ = "world_beats"
    __table_args__ = (
        UniqueConstraint("arc_id", "beat_index", name="uq_world_beats_arc_index"),
        CheckConstraint("beat_index >= 0 AND beat_index <= 14", name="ck_world_beats_index"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    arc_id: Mapped[int] = mapped_column(ForeignKey("world_arcs.id"), nullable=False)
    beat_index: Mapped[int] = mapped_column(Integer, nullable=False)
    beat_type: Mapped[str] = mapped_column(String(20), nullable=False)
    beat_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    world_directives: Mapped[list] = mapped_column(JSON, default=list)
    emergent_storylines: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)

    arc: Mapped[DBArc] = relationship(back_populates="beats")


class DBEvent(Base):
    __tablename__ = "world_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    world_id: Mapped[int] = mapped_column(ForeignKey("worlds.id"), nullable=False)
    arc_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("world_arcs.id"), nullable=True
    )
    beat_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("world_beats.id"), nullable=True
    )
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    impact_level: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)

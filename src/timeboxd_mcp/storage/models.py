"""Relational schema for timeboxes and the rows they own."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """Persist naive UTC and hand back timezone-aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None or value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    pass


class TimeboxRow(Base):
    __tablename__ = "timeboxes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    intention: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    intended_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="not_started")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    after_time_stopped_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    finished_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    archived_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    display_order: Mapped[Optional[int]] = mapped_column(Integer)
    linear_project_id: Mapped[Optional[str]] = mapped_column(Text)
    linear_issue_id: Mapped[Optional[str]] = mapped_column(Text)
    linear_issue_identifier: Mapped[Optional[str]] = mapped_column(Text)
    linear_issue_url: Mapped[Optional[str]] = mapped_column(Text)

    sessions: Mapped[list["SessionRow"]] = relationship(
        back_populates="timebox", cascade="all, delete-orphan", passive_deletes=True
    )
    change_log: Mapped[list["ChangeLogRow"]] = relationship(
        back_populates="timebox", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_timeboxes_created_at", "created_at"),
        Index("idx_timeboxes_started_at", "started_at"),
        Index("idx_timeboxes_deleted_at", "deleted_at"),
    )


class SessionRow(Base):
    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timebox_id: Mapped[int] = mapped_column(
        ForeignKey("timeboxes.id", ondelete="CASCADE"), nullable=False
    )
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    stopped_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)

    timebox: Mapped[TimeboxRow] = relationship(back_populates="sessions")

    __table_args__ = (
        Index("idx_sessions_timebox_id", "timebox_id"),
        Index("idx_sessions_started_at", "started_at"),
    )


class ChangeLogRow(Base):
    __tablename__ = "timebox_change_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timebox_id: Mapped[int] = mapped_column(
        ForeignKey("timeboxes.id", ondelete="CASCADE"), nullable=False
    )
    previous_intention: Mapped[Optional[str]] = mapped_column(Text)
    updated_intention: Mapped[Optional[str]] = mapped_column(Text)
    previous_notes: Mapped[Optional[str]] = mapped_column(Text)
    updated_notes: Mapped[Optional[str]] = mapped_column(Text)
    previous_intended_duration: Mapped[Optional[int]] = mapped_column(Integer)
    new_intended_duration: Mapped[Optional[int]] = mapped_column(Integer)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    timebox: Mapped[TimeboxRow] = relationship(back_populates="change_log")

    __table_args__ = (Index("idx_timebox_change_log_timebox_id", "timebox_id"),)


__all__ = ["Base", "ChangeLogRow", "SessionRow", "TimeboxRow", "UTCDateTime"]

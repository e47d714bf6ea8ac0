"""Read models: timeboxes joined with their sessions and derived work time."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..clock import Clock
from ..errors import NotFoundError
from ..storage import TimeboxRow, TimeboxStore
from .changelog import ChangeLog
from .ledger import SessionLedger
from .records import ChangeLogEntry, Timebox, TimeboxView, WorkSession
from .status import TimeboxStatus


class TimeboxQueries:
    """Build the today, active and archived views plus direct history reads."""

    def __init__(
        self,
        store: TimeboxStore,
        *,
        ledger: SessionLedger | None = None,
        change_log: ChangeLog | None = None,
        clock: Clock | None = None,
        local_tz: tzinfo | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or store.now
        self._ledger = ledger or SessionLedger()
        self._change_log = change_log or ChangeLog()
        self._local_tz = local_tz

    def _today_bounds(self, now: datetime) -> tuple[datetime, datetime]:
        local_now = now.astimezone(self._local_tz) if self._local_tz else now.astimezone()
        start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=1)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    def _project(self, db: Session, rows: Iterable[TimeboxRow], now: datetime) -> list[TimeboxView]:
        views: list[TimeboxView] = []
        for row in rows:
            sessions = self._ledger.list_sessions(db, row.id)
            views.append(
                TimeboxView(
                    timebox=Timebox.from_row(row),
                    actual_duration=self._ledger.actual_duration(sessions, now),
                    sessions=sessions,
                )
            )
        return views

    def today(self) -> list[TimeboxView]:
        """Timeboxes created on the current local date, neither deleted nor archived."""

        now = self._clock()
        start, end = self._today_bounds(now)
        statement = (
            select(TimeboxRow)
            .where(
                TimeboxRow.created_at >= start,
                TimeboxRow.created_at < end,
                TimeboxRow.deleted_at.is_(None),
                TimeboxRow.archived_at.is_(None),
            )
            .order_by(
                TimeboxRow.display_order.is_(None),
                TimeboxRow.display_order,
                TimeboxRow.created_at.desc(),
                TimeboxRow.id.desc(),
            )
        )
        with self._store.transaction() as db:
            return self._project(db, db.scalars(statement).all(), now)

    def active(self) -> list[TimeboxView]:
        """Started timeboxes that have not completed, been cancelled or deleted."""

        now = self._clock()
        statement = (
            select(TimeboxRow)
            .where(
                TimeboxRow.started_at.is_not(None),
                TimeboxRow.completed_at.is_(None),
                TimeboxRow.after_time_stopped_at.is_(None),
                TimeboxRow.canceled_at.is_(None),
                TimeboxRow.deleted_at.is_(None),
            )
            .order_by(TimeboxRow.created_at.desc(), TimeboxRow.id.desc())
        )
        with self._store.transaction() as db:
            return self._project(db, db.scalars(statement).all(), now)

    def running(self) -> list[TimeboxView]:
        """Every non-deleted timebox currently in progress, whatever its markers."""

        now = self._clock()
        statement = (
            select(TimeboxRow)
            .where(
                TimeboxRow.status == TimeboxStatus.IN_PROGRESS.to_storage(),
                TimeboxRow.deleted_at.is_(None),
            )
            .order_by(TimeboxRow.created_at.desc(), TimeboxRow.id.desc())
        )
        with self._store.transaction() as db:
            return self._project(db, db.scalars(statement).all(), now)

    def archived(self) -> list[TimeboxView]:
        now = self._clock()
        start, end = self._today_bounds(now)
        statement = (
            select(TimeboxRow)
            .where(
                TimeboxRow.created_at >= start,
                TimeboxRow.created_at < end,
                TimeboxRow.deleted_at.is_(None),
                TimeboxRow.archived_at.is_not(None),
            )
            .order_by(TimeboxRow.archived_at.desc(), TimeboxRow.id.desc())
        )
        with self._store.transaction() as db:
            return self._project(db, db.scalars(statement).all(), now)

    def get(self, timebox_id: int) -> TimeboxView:
        now = self._clock()
        with self._store.transaction() as db:
            row = db.get(TimeboxRow, timebox_id)
            if row is None or row.deleted_at is not None:
                raise NotFoundError(f"Timebox {timebox_id} not found")
            return self._project(db, [row], now)[0]

    @staticmethod
    def _require_exists(db: Session, timebox_id: int) -> None:
        # Soft-deleted timeboxes keep their history readable.
        if db.get(TimeboxRow, timebox_id) is None:
            raise NotFoundError(f"Timebox {timebox_id} not found")

    def sessions(self, timebox_id: int) -> list[WorkSession]:
        with self._store.transaction() as db:
            self._require_exists(db, timebox_id)
            return self._ledger.list_sessions(db, timebox_id)

    def active_session(self, timebox_id: int) -> WorkSession | None:
        with self._store.transaction() as db:
            self._require_exists(db, timebox_id)
            return self._ledger.active(db, timebox_id)

    def change_log(self, timebox_id: int) -> list[ChangeLogEntry]:
        with self._store.transaction() as db:
            self._require_exists(db, timebox_id)
            return self._change_log.entries(db, timebox_id)


__all__ = ["TimeboxQueries"]

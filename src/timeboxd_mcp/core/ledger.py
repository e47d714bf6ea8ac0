"""Session ledger: the start/stop history behind every timebox."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import ConflictError
from ..storage.models import SessionRow
from .records import WorkSession

logger = logging.getLogger(__name__)


class CloseReason(str, Enum):
    STOPPED = "stopped"
    CANCELLED = "cancelled"


class SessionLedger:
    """Open, close and total the work sessions recorded against timeboxes.

    Every method works inside the caller's transaction; the ledger never
    commits on its own.
    """

    @staticmethod
    def _open_rows(db: Session, timebox_id: int) -> list[SessionRow]:
        statement = select(SessionRow).where(
            SessionRow.timebox_id == timebox_id,
            SessionRow.stopped_at.is_(None),
            SessionRow.cancelled_at.is_(None),
        )
        return list(db.scalars(statement))

    def open(self, db: Session, timebox_id: int, *, at: datetime) -> WorkSession:
        if self._open_rows(db, timebox_id):
            raise ConflictError(f"Timebox {timebox_id} already has an open session")
        row = SessionRow(timebox_id=timebox_id, started_at=at)
        db.add(row)
        db.flush()
        logger.debug("Opened session", extra={"timebox_id": timebox_id, "session_id": row.id})
        return WorkSession.from_row(row)

    def close(
        self,
        db: Session,
        timebox_id: int,
        reason: CloseReason,
        *,
        at: datetime,
    ) -> list[WorkSession]:
        """Close every open session; closing nothing is not an error."""

        rows = self._open_rows(db, timebox_id)
        for row in rows:
            if reason is CloseReason.CANCELLED:
                row.cancelled_at = at
            else:
                row.stopped_at = at
        if rows:
            db.flush()
            logger.debug(
                "Closed sessions",
                extra={"timebox_id": timebox_id, "count": len(rows), "reason": reason.value},
            )
        return [WorkSession.from_row(row) for row in rows]

    def list_sessions(self, db: Session, timebox_id: int) -> list[WorkSession]:
        """Return all sessions for a timebox, newest start first."""

        statement = (
            select(SessionRow)
            .where(SessionRow.timebox_id == timebox_id)
            .order_by(SessionRow.started_at.desc(), SessionRow.id.desc())
        )
        return [WorkSession.from_row(row) for row in db.scalars(statement)]

    def active(self, db: Session, timebox_id: int) -> WorkSession | None:
        rows = self._open_rows(db, timebox_id)
        return WorkSession.from_row(rows[0]) if rows else None

    @staticmethod
    def actual_duration(sessions: Iterable[WorkSession], now: datetime) -> float:
        """Sum of non-cancelled session time in seconds, open sessions up to ``now``."""

        return sum((session.duration(now) for session in sessions), 0.0)


__all__ = ["CloseReason", "SessionLedger"]

"""Timebox lifecycle state machine."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from sqlalchemy.orm import Session

from ..clock import Clock
from ..errors import NotFoundError, ValidationError
from ..storage import TimeboxRow, TimeboxStore
from .changelog import UNSET, ChangeLog
from .ledger import CloseReason, SessionLedger
from .records import Timebox
from .status import TimeboxStatus

logger = logging.getLogger(__name__)


def _validate_intention(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Intention must be a non-empty string")
    return value.strip()


def _validate_duration(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Intended duration must be an integer number of seconds")
    if value <= 0:
        raise ValidationError("Intended duration must be greater than zero")
    return value


def _validate_notes(value: Any) -> str | None:
    if value is not None and not isinstance(value, str):
        raise ValidationError("Notes must be a string or null")
    return value


class TimeboxStateMachine:
    """Apply lifecycle transitions to timeboxes.

    Each public method is one command: it takes the store lock, reads the
    current row, closes or opens sessions through the ledger, records edits
    through the change log and commits everything together. Every timestamp a
    command writes comes from a single clock reading.
    """

    def __init__(
        self,
        store: TimeboxStore,
        *,
        ledger: SessionLedger | None = None,
        change_log: ChangeLog | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or store.now
        self.ledger = ledger or SessionLedger()
        self.change_log = change_log or ChangeLog()

    @staticmethod
    def _load(db: Session, timebox_id: int) -> TimeboxRow:
        row = db.get(TimeboxRow, timebox_id)
        if row is None or row.deleted_at is not None:
            raise NotFoundError(f"Timebox {timebox_id} not found")
        return row

    def create(
        self,
        intention: str,
        intended_duration: int,
        notes: str | None = None,
        *,
        linear_project_id: str | None = None,
        linear_issue_id: str | None = None,
        linear_issue_identifier: str | None = None,
        linear_issue_url: str | None = None,
    ) -> Timebox:
        intention = _validate_intention(intention)
        intended_duration = _validate_duration(intended_duration)
        notes = _validate_notes(notes)

        now = self._clock()
        with self._store.transaction() as db:
            row = TimeboxRow(
                intention=intention,
                notes=notes,
                intended_duration=intended_duration,
                status=TimeboxStatus.NOT_STARTED.to_storage(),
                created_at=now,
                updated_at=now,
                linear_project_id=linear_project_id,
                linear_issue_id=linear_issue_id,
                linear_issue_identifier=linear_issue_identifier,
                linear_issue_url=linear_issue_url,
            )
            db.add(row)
            db.flush()
            timebox = Timebox.from_row(row)

        logger.info(
            "Created timebox",
            extra={"timebox_id": timebox.id, "intended_duration": intended_duration},
        )
        return timebox

    def start(self, timebox_id: int) -> Timebox:
        """Begin or resume work from any state.

        Restarting clears ``completed_at`` only; ``after_time_stopped_at`` and
        ``canceled_at`` are kept, so such a timebox stays out of the active view.
        """

        now = self._clock()
        with self._store.transaction() as db:
            row = self._load(db, timebox_id)
            status = TimeboxStatus.from_storage(row.status)
            if self.ledger.active(db, timebox_id) is not None:
                logger.debug("Timebox already running", extra={"timebox_id": timebox_id})
                return Timebox.from_row(row)

            if row.started_at is None:
                row.started_at = now
            row.status = TimeboxStatus.IN_PROGRESS.to_storage()
            row.completed_at = None
            row.updated_at = now
            self.ledger.open(db, timebox_id, at=now)
            timebox = Timebox.from_row(row)

        logger.info(
            "Started timebox",
            extra={"timebox_id": timebox_id, "previous_status": status.value},
        )
        return timebox

    def pause(self, timebox_id: int) -> Timebox:
        now = self._clock()
        with self._store.transaction() as db:
            row = self._load(db, timebox_id)
            status = TimeboxStatus.from_storage(row.status)
            if status is not TimeboxStatus.IN_PROGRESS:
                logger.debug(
                    "Pause ignored", extra={"timebox_id": timebox_id, "status": status.value}
                )
                return Timebox.from_row(row)

            self.ledger.close(db, timebox_id, CloseReason.STOPPED, at=now)
            row.status = TimeboxStatus.PAUSED.to_storage()
            row.updated_at = now
            timebox = Timebox.from_row(row)

        logger.info("Paused timebox", extra={"timebox_id": timebox_id})
        return timebox

    def stop(self, timebox_id: int) -> Timebox:
        """Manual stop by the user."""

        return self._end(
            timebox_id,
            TimeboxStatus.STOPPED,
            CloseReason.STOPPED,
            markers=("completed_at",),
        )

    def finish(self, timebox_id: int) -> Timebox:
        """Explicit completion by the user."""

        return self._end(
            timebox_id,
            TimeboxStatus.COMPLETED,
            CloseReason.STOPPED,
            markers=("finished_at", "completed_at"),
        )

    def stop_after_time(self, timebox_id: int) -> Timebox:
        """Completion because the intended time ran out or the user went idle."""

        return self._end(
            timebox_id,
            TimeboxStatus.COMPLETED,
            CloseReason.STOPPED,
            markers=("after_time_stopped_at", "completed_at"),
        )

    def cancel(self, timebox_id: int) -> Timebox:
        return self._end(
            timebox_id,
            TimeboxStatus.CANCELLED,
            CloseReason.CANCELLED,
            markers=("canceled_at",),
        )

    def _end(
        self,
        timebox_id: int,
        target: TimeboxStatus,
        reason: CloseReason,
        *,
        markers: tuple[str, ...],
    ) -> Timebox:
        now = self._clock()
        with self._store.transaction() as db:
            row = self._load(db, timebox_id)
            status = TimeboxStatus.from_storage(row.status)
            if status.is_terminal:
                logger.debug(
                    "Timebox already ended",
                    extra={"timebox_id": timebox_id, "status": status.value, "target": target.value},
                )
                return Timebox.from_row(row)

            self.ledger.close(db, timebox_id, reason, at=now)
            for marker in markers:
                setattr(row, marker, now)
            row.status = target.to_storage()
            row.updated_at = now
            timebox = Timebox.from_row(row)

        logger.info(
            "Ended timebox",
            extra={"timebox_id": timebox_id, "status": target.value, "marker": markers[0]},
        )
        return timebox

    def delete(self, timebox_id: int) -> Timebox:
        """Soft delete; status and sessions are left as they are."""

        now = self._clock()
        with self._store.transaction() as db:
            row = self._load(db, timebox_id)
            row.deleted_at = now
            row.updated_at = now
            timebox = Timebox.from_row(row)

        logger.info("Deleted timebox", extra={"timebox_id": timebox_id})
        return timebox

    def archive(self, timebox_id: int) -> Timebox:
        return self._set_archived(timebox_id, archived=True)

    def unarchive(self, timebox_id: int) -> Timebox:
        return self._set_archived(timebox_id, archived=False)

    def _set_archived(self, timebox_id: int, *, archived: bool) -> Timebox:
        now = self._clock()
        with self._store.transaction() as db:
            row = self._load(db, timebox_id)
            row.archived_at = now if archived else None
            row.updated_at = now
            timebox = Timebox.from_row(row)

        logger.info(
            "Archived timebox" if archived else "Unarchived timebox",
            extra={"timebox_id": timebox_id},
        )
        return timebox

    def update(
        self,
        timebox_id: int,
        *,
        intention: Any = UNSET,
        notes: Any = UNSET,
        intended_duration: Any = UNSET,
    ) -> Timebox:
        """Edit tracked fields, logging one change entry when anything differs.

        Pass ``notes=None`` to clear the notes; omit an argument to leave the
        field alone.
        """

        if intention is not UNSET:
            intention = _validate_intention(intention)
        if notes is not UNSET:
            notes = _validate_notes(notes)
        if intended_duration is not UNSET:
            intended_duration = _validate_duration(intended_duration)

        now = self._clock()
        with self._store.transaction() as db:
            row = self._load(db, timebox_id)
            changes = self.change_log.diff(
                row,
                intention=intention,
                notes=notes,
                intended_duration=intended_duration,
            )
            if not changes:
                logger.debug("Update without changes", extra={"timebox_id": timebox_id})
                return Timebox.from_row(row)

            self.change_log.record(db, timebox_id, changes, at=now)
            for field_name, change in changes.items():
                setattr(row, field_name, change.updated)
            row.updated_at = now
            timebox = Timebox.from_row(row)

        logger.info(
            "Updated timebox",
            extra={"timebox_id": timebox_id, "fields": sorted(changes)},
        )
        return timebox

    def reorder(self, orders: Iterable[tuple[int, int]] | Mapping[int, int]) -> list[Timebox]:
        """Apply display orders atomically; a repeated id keeps its last value."""

        items = list(orders.items()) if isinstance(orders, Mapping) else list(orders)
        for timebox_id, display_order in items:
            if isinstance(display_order, bool) or not isinstance(display_order, int):
                raise ValidationError(
                    f"Display order for timebox {timebox_id} must be an integer"
                )

        now = self._clock()
        touched: dict[int, TimeboxRow] = {}
        with self._store.transaction() as db:
            for timebox_id, display_order in items:
                row = self._load(db, timebox_id)
                row.display_order = display_order
                row.updated_at = now
                touched[timebox_id] = row
            db.flush()
            result = [Timebox.from_row(row) for row in touched.values()]

        logger.info("Reordered timeboxes", extra={"count": len(touched)})
        return result


__all__ = ["TimeboxStateMachine"]

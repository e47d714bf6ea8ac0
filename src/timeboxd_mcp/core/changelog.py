"""Audit trail of edits to a timebox's intention, notes and duration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..storage.models import ChangeLogRow, TimeboxRow
from .records import ChangeLogEntry


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass(slots=True, frozen=True)
class FieldChange:
    previous: Any
    updated: Any


TRACKED_FIELDS = ("intention", "notes", "intended_duration")


class ChangeLog:
    """Append-only recorder; it diffs requested values and writes one entry."""

    @staticmethod
    def diff(
        current: TimeboxRow,
        *,
        intention: Any = UNSET,
        notes: Any = UNSET,
        intended_duration: Any = UNSET,
    ) -> dict[str, FieldChange]:
        requested = {
            "intention": intention,
            "notes": notes,
            "intended_duration": intended_duration,
        }
        changes: dict[str, FieldChange] = {}
        for name in TRACKED_FIELDS:
            value = requested[name]
            if value is UNSET:
                continue
            previous = getattr(current, name)
            if value != previous:
                changes[name] = FieldChange(previous=previous, updated=value)
        return changes

    def record(
        self,
        db: Session,
        timebox_id: int,
        changes: dict[str, FieldChange],
        *,
        at: datetime,
    ) -> ChangeLogEntry | None:
        if not changes:
            return None

        intention = changes.get("intention")
        notes = changes.get("notes")
        duration = changes.get("intended_duration")
        row = ChangeLogRow(
            timebox_id=timebox_id,
            previous_intention=intention.previous if intention else None,
            updated_intention=intention.updated if intention else None,
            previous_notes=notes.previous if notes else None,
            updated_notes=notes.updated if notes else None,
            previous_intended_duration=duration.previous if duration else None,
            new_intended_duration=duration.updated if duration else None,
            updated_at=at,
        )
        db.add(row)
        db.flush()
        return ChangeLogEntry.from_row(row)

    def entries(self, db: Session, timebox_id: int) -> list[ChangeLogEntry]:
        statement = (
            select(ChangeLogRow)
            .where(ChangeLogRow.timebox_id == timebox_id)
            .order_by(ChangeLogRow.updated_at.desc(), ChangeLogRow.id.desc())
        )
        return [ChangeLogEntry.from_row(row) for row in db.scalars(statement)]


__all__ = ["ChangeLog", "FieldChange", "TRACKED_FIELDS", "UNSET"]

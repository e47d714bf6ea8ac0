"""Read records handed out by the core."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..storage.models import ChangeLogRow, SessionRow, TimeboxRow
from .status import TimeboxStatus


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(slots=True, frozen=True)
class WorkSession:
    """One contiguous interval of work against a timebox."""

    id: int
    timebox_id: int
    started_at: datetime
    stopped_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.stopped_at is None and self.cancelled_at is None

    def duration(self, now: datetime) -> float:
        """Seconds of work, counting an open session up to ``now``."""

        if self.cancelled_at is not None:
            return 0.0
        end = self.stopped_at or now
        return max(0.0, (end - self.started_at).total_seconds())

    @classmethod
    def from_row(cls, row: SessionRow) -> "WorkSession":
        return cls(
            id=row.id,
            timebox_id=row.timebox_id,
            started_at=row.started_at,
            stopped_at=row.stopped_at,
            cancelled_at=row.cancelled_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timebox_id": self.timebox_id,
            "started_at": _iso(self.started_at),
            "stopped_at": _iso(self.stopped_at),
            "cancelled_at": _iso(self.cancelled_at),
        }


@dataclass(slots=True, frozen=True)
class ChangeLogEntry:
    """Audit record of one update to a timebox."""

    id: int
    timebox_id: int
    updated_at: datetime
    previous_intention: str | None = None
    updated_intention: str | None = None
    previous_notes: str | None = None
    updated_notes: str | None = None
    previous_intended_duration: int | None = None
    new_intended_duration: int | None = None

    @classmethod
    def from_row(cls, row: ChangeLogRow) -> "ChangeLogEntry":
        return cls(
            id=row.id,
            timebox_id=row.timebox_id,
            updated_at=row.updated_at,
            previous_intention=row.previous_intention,
            updated_intention=row.updated_intention,
            previous_notes=row.previous_notes,
            updated_notes=row.updated_notes,
            previous_intended_duration=row.previous_intended_duration,
            new_intended_duration=row.new_intended_duration,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timebox_id": self.timebox_id,
            "previous_intention": self.previous_intention,
            "updated_intention": self.updated_intention,
            "previous_notes": self.previous_notes,
            "updated_notes": self.updated_notes,
            "previous_intended_duration": self.previous_intended_duration,
            "new_intended_duration": self.new_intended_duration,
            "updated_at": _iso(self.updated_at),
        }


@dataclass(slots=True, frozen=True)
class Timebox:
    """Snapshot of a timebox row."""

    id: int
    intention: str
    intended_duration: int
    status: TimeboxStatus
    created_at: datetime
    updated_at: datetime
    notes: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    after_time_stopped_at: datetime | None = None
    canceled_at: datetime | None = None
    finished_at: datetime | None = None
    archived_at: datetime | None = None
    deleted_at: datetime | None = None
    display_order: int | None = None
    linear_project_id: str | None = None
    linear_issue_id: str | None = None
    linear_issue_identifier: str | None = None
    linear_issue_url: str | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @classmethod
    def from_row(cls, row: TimeboxRow) -> "Timebox":
        return cls(
            id=row.id,
            intention=row.intention,
            intended_duration=row.intended_duration,
            status=TimeboxStatus.from_storage(row.status),
            created_at=row.created_at,
            updated_at=row.updated_at,
            notes=row.notes,
            started_at=row.started_at,
            completed_at=row.completed_at,
            after_time_stopped_at=row.after_time_stopped_at,
            canceled_at=row.canceled_at,
            finished_at=row.finished_at,
            archived_at=row.archived_at,
            deleted_at=row.deleted_at,
            display_order=row.display_order,
            linear_project_id=row.linear_project_id,
            linear_issue_id=row.linear_issue_id,
            linear_issue_identifier=row.linear_issue_identifier,
            linear_issue_url=row.linear_issue_url,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "intention": self.intention,
            "notes": self.notes,
            "intended_duration": self.intended_duration,
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "after_time_stopped_at": _iso(self.after_time_stopped_at),
            "canceled_at": _iso(self.canceled_at),
            "finished_at": _iso(self.finished_at),
            "archived_at": _iso(self.archived_at),
            "deleted_at": _iso(self.deleted_at),
            "display_order": self.display_order,
            "linear_project_id": self.linear_project_id,
            "linear_issue_id": self.linear_issue_id,
            "linear_issue_identifier": self.linear_issue_identifier,
            "linear_issue_url": self.linear_issue_url,
        }


@dataclass(slots=True, frozen=True)
class TimeboxView:
    """A timebox with its sessions and the work time derived from them."""

    timebox: Timebox
    actual_duration: float
    sessions: list[WorkSession] = field(default_factory=list)

    @property
    def remaining_duration(self) -> float:
        return self.timebox.intended_duration - self.actual_duration

    @property
    def is_overtime(self) -> bool:
        return self.remaining_duration < 0

    def to_dict(self) -> dict[str, Any]:
        payload = self.timebox.to_dict()
        payload.update(
            {
                "sessions": [session.to_dict() for session in self.sessions],
                "actual_duration": self.actual_duration,
                "remaining_duration": self.remaining_duration,
                "is_overtime": self.is_overtime,
            }
        )
        return payload


__all__ = ["ChangeLogEntry", "Timebox", "TimeboxView", "WorkSession"]

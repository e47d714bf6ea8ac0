"""Timebox lifecycle states."""

from __future__ import annotations

from enum import Enum

from ..errors import StorageError


class TimeboxStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    STOPPED = "stopped"

    @classmethod
    def from_storage(cls, value: str) -> "TimeboxStatus":
        """Parse a persisted status string, refusing anything unrecognized."""

        try:
            return cls(value)
        except ValueError as exc:
            raise StorageError(f"Unknown timebox status '{value}' in storage") from exc

    def to_storage(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({TimeboxStatus.COMPLETED, TimeboxStatus.CANCELLED, TimeboxStatus.STOPPED})


__all__ = ["TimeboxStatus"]

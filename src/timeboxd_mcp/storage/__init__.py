"""Storage abstractions for timeboxd."""

from .database import TimeboxStore
from .models import Base, ChangeLogRow, SessionRow, TimeboxRow

__all__ = [
    "Base",
    "ChangeLogRow",
    "SessionRow",
    "TimeboxRow",
    "TimeboxStore",
]

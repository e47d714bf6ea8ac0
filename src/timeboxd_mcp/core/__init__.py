"""Timebox lifecycle core: state machine, session ledger, change log and views."""

from .changelog import UNSET, ChangeLog
from .idle import IdleMonitor
from .ledger import CloseReason, SessionLedger
from .machine import TimeboxStateMachine
from .queries import TimeboxQueries
from .records import ChangeLogEntry, Timebox, TimeboxView, WorkSession
from .status import TimeboxStatus

__all__ = [
    "UNSET",
    "ChangeLog",
    "ChangeLogEntry",
    "CloseReason",
    "IdleMonitor",
    "SessionLedger",
    "Timebox",
    "TimeboxQueries",
    "TimeboxStateMachine",
    "TimeboxStatus",
    "TimeboxView",
    "WorkSession",
]

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from timeboxd_mcp.core import TimeboxQueries, TimeboxStateMachine
from timeboxd_mcp.storage import TimeboxStore


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 14, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(clock):
    store = TimeboxStore(None, clock=clock)
    yield store
    store.dispose()


@pytest.fixture
def machine(store) -> TimeboxStateMachine:
    return TimeboxStateMachine(store)


@pytest.fixture
def queries(store, machine) -> TimeboxQueries:
    return TimeboxQueries(
        store,
        ledger=machine.ledger,
        change_log=machine.change_log,
        local_tz=timezone.utc,
    )

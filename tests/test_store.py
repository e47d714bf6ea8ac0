from __future__ import annotations

import threading
import time
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, func, select, text
from sqlalchemy.pool import StaticPool

from timeboxd_mcp.core import TimeboxStateMachine
from timeboxd_mcp.errors import StorageError
from timeboxd_mcp.storage import ChangeLogRow, SessionRow, TimeboxRow, TimeboxStore


def _timebox_row(now: datetime, **overrides) -> TimeboxRow:
    values = {
        "intention": "Write report",
        "intended_duration": 1500,
        "status": "not_started",
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return TimeboxRow(**values)


def test_file_store_creates_parent_directory(tmp_path, clock):
    path = tmp_path / "nested" / "timeboxd.db"
    store = TimeboxStore(path, clock=clock)
    try:
        assert store.ping() is True
        assert path.exists()
    finally:
        store.dispose()


def test_datetimes_round_trip_as_utc(store, clock):
    with store.transaction() as db:
        row = _timebox_row(clock())
        db.add(row)
        db.flush()
        timebox_id = row.id

    with store.transaction() as db:
        loaded = db.get(TimeboxRow, timebox_id)
        assert loaded.created_at == datetime(2025, 3, 14, 10, 0, tzinfo=timezone.utc)
        assert loaded.created_at.tzinfo is not None


def test_transaction_rolls_back_on_error(store, clock):
    with pytest.raises(RuntimeError):
        with store.transaction() as db:
            db.add(_timebox_row(clock()))
            db.flush()
            raise RuntimeError("boom")

    with store.transaction() as db:
        assert db.scalar(select(func.count()).select_from(TimeboxRow)) == 0


def test_database_errors_become_storage_errors(store):
    with pytest.raises(StorageError):
        with store.transaction() as db:
            db.execute(text("SELECT * FROM no_such_table"))


def test_unopenable_database_raises_storage_error(tmp_path, clock):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = TimeboxStore(blocker / "timeboxd.db", clock=clock)
    with pytest.raises(StorageError):
        store.ping()


def test_purge_removes_sessions_and_change_log(store, clock):
    now = clock()
    with store.transaction() as db:
        row = _timebox_row(now)
        db.add(row)
        db.flush()
        timebox_id = row.id
        db.add(SessionRow(timebox_id=timebox_id, started_at=now))
        db.add(
            ChangeLogRow(
                timebox_id=timebox_id,
                previous_notes=None,
                updated_notes="hello",
                updated_at=now,
            )
        )

    assert store.purge_timebox(timebox_id) is True
    assert store.purge_timebox(timebox_id) is False

    with store.transaction() as db:
        assert db.scalar(select(func.count()).select_from(SessionRow)) == 0
        assert db.scalar(select(func.count()).select_from(ChangeLogRow)) == 0


def test_unknown_status_in_storage_is_rejected(store, machine, clock):
    timebox = machine.create("Plan sprint", 600)
    with store.transaction() as db:
        db.get(TimeboxRow, timebox.id).status = "exploded"

    with pytest.raises(StorageError):
        machine.start(timebox.id)


def test_concurrent_first_use_opens_one_database(clock):
    engines = []

    def slow_engine_factory():
        time.sleep(0.2)
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        engines.append(engine)
        return engine

    store = TimeboxStore(None, engine_factory=slow_engine_factory, clock=clock)
    machine = TimeboxStateMachine(store)
    created: list[int] = []

    def create() -> None:
        created.append(machine.create("Parallel", 600).id)

    threads = [threading.Thread(target=create) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    try:
        assert len(engines) == 1
        assert sorted(created) == [1, 2]
        with store.transaction() as db:
            assert db.scalar(select(func.count()).select_from(TimeboxRow)) == 2
    finally:
        store.dispose()

from __future__ import annotations

import argparse
import importlib.util
import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from timeboxd_mcp.core import TimeboxStateMachine


def _load_diag(module_name: str):
    module_path = Path(__file__).resolve().parents[1] / "scripts" / "timeboxd_diag.py"
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    assert spec and spec.loader
    diag = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(diag)
    return diag


def test_diagnostics_cli_handles_unusable_database(tmp_path: Path) -> None:
    repo_root = Path(__file__).resolve().parents[1]
    script = repo_root / "scripts" / "timeboxd_diag.py"
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    env = os.environ.copy()
    env["PYTHONPATH"] = f"{repo_root / 'src'}" + os.pathsep + env.get("PYTHONPATH", "")
    env["TIMEBOXD_DATABASE_PATH"] = str(blocker / "timeboxd.db")
    process = subprocess.run(
        [sys.executable, str(script), "today"],
        cwd=str(tmp_path),
        capture_output=True,
        text=True,
        env=env,
    )
    assert process.returncode != 0
    assert "Store unavailable" in process.stdout


@pytest.fixture
def disposed(monkeypatch, store) -> list[bool]:
    calls: list[bool] = []
    monkeypatch.setattr(store, "dispose", lambda: calls.append(True))
    return calls


@pytest.fixture
def seeded(monkeypatch, store, disposed):
    diag = _load_diag("timeboxd_diag_test_module")

    def fake_load_store(_settings):
        return store

    monkeypatch.delenv("TIMEBOXD_LOCAL_TIMEZONE", raising=False)
    monkeypatch.setattr(diag, "load_store", fake_load_store)
    return diag


def test_today_json(seeded, machine, capsys):
    timebox = machine.create("Write docs", 600)
    machine.start(timebox.id)

    seeded.cmd_today(argparse.Namespace(json=True))

    payload = json.loads(capsys.readouterr().out)
    assert [item["id"] for item in payload] == [timebox.id]
    assert payload[0]["status"] == "in_progress"


def test_active_plain_text(seeded, machine, clock, capsys):
    timebox = machine.create("Write docs", 600)
    machine.start(timebox.id)
    clock.advance(seconds=90)

    seeded.cmd_active(argparse.Namespace(json=False))

    out = capsys.readouterr().out
    assert f"{timebox.id} [in_progress] Write docs (90.0s / 600s)" in out


def test_metrics(seeded, machine: TimeboxStateMachine, clock, capsys):
    quick = machine.create("Quick", 60)
    archived = machine.create("Archived", 600)
    machine.create("Waiting", 600)
    machine.start(quick.id)
    clock.advance(minutes=2)
    machine.archive(archived.id)

    seeded.cmd_metrics(argparse.Namespace())

    metrics = json.loads(capsys.readouterr().out)
    assert metrics["today_total"] == 2
    assert metrics["status_counts"] == {"in_progress": 1, "not_started": 1}
    assert metrics["active_total"] == 1
    assert metrics["running_total"] == 1
    assert metrics["archived_total"] == 1
    assert metrics["intended_seconds_today"] == 660
    assert metrics["actual_seconds_today"] == 120
    assert metrics["overtime_total"] == 1


def test_metrics_counts_restarted_expired_timebox_as_running(seeded, machine, capsys):
    timebox = machine.create("Overran", 600)
    machine.start(timebox.id)
    machine.stop_after_time(timebox.id)
    machine.start(timebox.id)

    seeded.cmd_metrics(argparse.Namespace())

    metrics = json.loads(capsys.readouterr().out)
    assert metrics["active_total"] == 0
    assert metrics["running_total"] == 1


def test_sessions_and_changes(seeded, machine, disposed, capsys):
    timebox = machine.create("Write docs", 600)
    machine.start(timebox.id)
    machine.update(timebox.id, intention="Write better docs")

    seeded.cmd_sessions(argparse.Namespace(timebox_id=timebox.id))
    sessions = json.loads(capsys.readouterr().out)
    assert len(sessions) == 1

    seeded.cmd_changes(argparse.Namespace(timebox_id=timebox.id))
    changes = json.loads(capsys.readouterr().out)
    assert changes[0]["updated_intention"] == "Write better docs"
    assert disposed == [True, True]


def test_sessions_for_unknown_timebox_exits(seeded, disposed, capsys):
    with pytest.raises(SystemExit) as excinfo:
        seeded.cmd_sessions(argparse.Namespace(timebox_id=999))
    assert excinfo.value.code == 1
    assert "not found" in capsys.readouterr().out
    assert disposed == [True]


def test_parser_requires_timebox_id():
    diag = _load_diag("timeboxd_diag_parser_module")
    parser = diag.build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["sessions"])
    args = parser.parse_args(["changes", "--timebox-id", "7"])
    assert args.timebox_id == 7

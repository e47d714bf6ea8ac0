"""timeboxd diagnostics CLI."""

from __future__ import annotations

import argparse
import json
from contextlib import contextmanager
from typing import Iterator

from timeboxd_mcp.config import TimeboxdSettings
from timeboxd_mcp.core import TimeboxQueries
from timeboxd_mcp.errors import NotFoundError, StorageError
from timeboxd_mcp.storage import TimeboxStore


def load_store(settings: TimeboxdSettings) -> TimeboxStore:
    store = TimeboxStore(settings.database_path.expanduser())
    try:
        store.ping()
    except StorageError as exc:
        store.dispose()
        print(f"Store unavailable: {exc}")
        raise SystemExit(1)
    return store


@contextmanager
def open_queries(settings: TimeboxdSettings) -> Iterator[TimeboxQueries]:
    store = load_store(settings)
    try:
        yield TimeboxQueries(store, local_tz=settings.tzinfo())
    finally:
        store.dispose()


def _print_views(views, as_json: bool) -> None:
    if as_json:
        print(json.dumps([view.to_dict() for view in views], indent=2))
        return
    for view in views:
        timebox = view.timebox
        print(
            f"{timebox.id} [{timebox.status.value}] {timebox.intention} "
            f"({view.actual_duration}s / {timebox.intended_duration}s)"
        )


def _list(view_name: str, args: argparse.Namespace) -> None:
    settings = TimeboxdSettings()
    with open_queries(settings) as queries:
        try:
            views = getattr(queries, view_name)()
        except StorageError as exc:
            print(f"Store unavailable: {exc}")
            raise SystemExit(1)
    _print_views(views, args.json)


def cmd_today(args: argparse.Namespace) -> None:
    _list("today", args)


def cmd_active(args: argparse.Namespace) -> None:
    _list("active", args)


def cmd_archived(args: argparse.Namespace) -> None:
    _list("archived", args)


def cmd_sessions(args: argparse.Namespace) -> None:
    settings = TimeboxdSettings()
    with open_queries(settings) as queries:
        try:
            sessions = queries.sessions(args.timebox_id)
        except NotFoundError as exc:
            print(str(exc))
            raise SystemExit(1)
        except StorageError as exc:
            print(f"Store unavailable: {exc}")
            raise SystemExit(1)
    print(json.dumps([session.to_dict() for session in sessions], indent=2))


def cmd_changes(args: argparse.Namespace) -> None:
    settings = TimeboxdSettings()
    with open_queries(settings) as queries:
        try:
            entries = queries.change_log(args.timebox_id)
        except NotFoundError as exc:
            print(str(exc))
            raise SystemExit(1)
        except StorageError as exc:
            print(f"Store unavailable: {exc}")
            raise SystemExit(1)
    print(json.dumps([entry.to_dict() for entry in entries], indent=2))


def cmd_metrics(args: argparse.Namespace) -> None:
    settings = TimeboxdSettings()
    with open_queries(settings) as queries:
        try:
            today = queries.today()
            active = queries.active()
            running = queries.running()
            archived = queries.archived()
        except StorageError as exc:
            print(f"Store unavailable: {exc}")
            raise SystemExit(1)

    status_counts: dict[str, int] = {}
    for view in today:
        status = view.timebox.status.value
        status_counts[status] = status_counts.get(status, 0) + 1

    metrics = {
        "today_total": len(today),
        "status_counts": status_counts,
        "active_total": len(active),
        "running_total": len(running),
        "archived_total": len(archived),
        "intended_seconds_today": sum(view.timebox.intended_duration for view in today),
        "actual_seconds_today": sum(view.actual_duration for view in today),
        "overtime_total": sum(1 for view in today if view.is_overtime),
    }

    print(json.dumps(metrics, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="timeboxd diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_today = sub.add_parser("today", help="List today's timeboxes")
    p_today.add_argument("--json", action="store_true", help="Output JSON")
    p_today.set_defaults(func=cmd_today)

    p_active = sub.add_parser("active", help="List started, unfinished timeboxes")
    p_active.add_argument("--json", action="store_true", help="Output JSON")
    p_active.set_defaults(func=cmd_active)

    p_archived = sub.add_parser("archived", help="List today's archived timeboxes")
    p_archived.add_argument("--json", action="store_true", help="Output JSON")
    p_archived.set_defaults(func=cmd_archived)

    p_sessions = sub.add_parser("sessions", help="List work sessions of a timebox")
    p_sessions.add_argument("--timebox-id", type=int, required=True)
    p_sessions.set_defaults(func=cmd_sessions)

    p_changes = sub.add_parser("changes", help="List change log entries of a timebox")
    p_changes.add_argument("--timebox-id", type=int, required=True)
    p_changes.set_defaults(func=cmd_changes)

    p_metrics = sub.add_parser("metrics", help="Show counts and totals for today")
    p_metrics.set_defaults(func=cmd_metrics)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()

"""Tool registration for timeboxd."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP

from ..config import TimeboxdSettings
from ..core import UNSET, IdleMonitor, TimeboxQueries, TimeboxStateMachine


@dataclass(slots=True)
class ToolHandles:
    create_timebox: Any
    update_timebox: Any
    start_timebox: Any
    pause_timebox: Any
    stop_timebox: Any
    finish_timebox: Any
    stop_timebox_after_time: Any
    cancel_timebox: Any
    delete_timebox: Any
    archive_timebox: Any
    unarchive_timebox: Any
    reorder_timeboxes: Any
    get_timebox: Any
    get_today_timeboxes: Any
    get_active_timeboxes: Any
    get_archived_timeboxes: Any
    get_sessions_for_timebox: Any
    get_active_session_for_timebox: Any
    get_timebox_change_log: Any
    report_idle_time: Any


def register_tools(
    server: FastMCP,
    *,
    settings: TimeboxdSettings,
    machine: TimeboxStateMachine,
    queries: TimeboxQueries,
    idle_monitor: IdleMonitor | None = None,
) -> ToolHandles:
    """Register timeboxd's MCP tools on the server."""

    def _create_timebox(
        intention: str,
        intended_duration: int,
        notes: str | None = None,
        linear_project_id: str | None = None,
        linear_issue_id: str | None = None,
        linear_issue_identifier: str | None = None,
        linear_issue_url: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Create a timebox in the not_started state."""

        timebox = machine.create(
            intention,
            intended_duration,
            notes,
            linear_project_id=linear_project_id,
            linear_issue_id=linear_issue_id,
            linear_issue_identifier=linear_issue_identifier,
            linear_issue_url=linear_issue_url,
        )
        _emit_log(context, "info", "Created timebox", extra={"timebox_id": timebox.id})
        return timebox.to_dict()

    def _update_timebox(
        id: int,
        intention: str | None = None,
        notes: str | None = None,
        intended_duration: int | None = None,
        clear_notes: bool = False,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Edit intention, notes or duration; omitted fields stay as they are."""

        timebox = machine.update(
            id,
            intention=intention if intention is not None else UNSET,
            notes=None if clear_notes else (notes if notes is not None else UNSET),
            intended_duration=intended_duration if intended_duration is not None else UNSET,
        )
        _emit_log(context, "info", "Updated timebox", extra={"timebox_id": id})
        return timebox.to_dict()

    tool_create = server.tool(
        name="create_timebox",
        description=(
            "Declare an intention with an intended duration in seconds. Optional notes and "
            "Linear project or issue references are stored as given."
        ),
    )(_create_timebox)

    tool_update = server.tool(
        name="update_timebox",
        description=(
            "Change a timebox's intention, notes or intended duration. Each effective change "
            "is written to the timebox change log; set clear_notes to remove notes."
        ),
    )(_update_timebox)

    def _transition(action: str, timebox_id: int, context: Context | None) -> dict[str, Any]:
        timebox = getattr(machine, action)(timebox_id)
        _emit_log(
            context,
            "info",
            "Timebox transition",
            extra={"timebox_id": timebox_id, "action": action, "status": timebox.status.value},
        )
        return timebox.to_dict()

    def _start_timebox(id: int, context: Context | None = None) -> dict[str, Any]:
        return _transition("start", id, context)

    def _pause_timebox(id: int, context: Context | None = None) -> dict[str, Any]:
        return _transition("pause", id, context)

    def _stop_timebox(id: int, context: Context | None = None) -> dict[str, Any]:
        return _transition("stop", id, context)

    def _finish_timebox(id: int, context: Context | None = None) -> dict[str, Any]:
        return _transition("finish", id, context)

    def _stop_timebox_after_time(id: int, context: Context | None = None) -> dict[str, Any]:
        return _transition("stop_after_time", id, context)

    def _cancel_timebox(id: int, context: Context | None = None) -> dict[str, Any]:
        return _transition("cancel", id, context)

    def _delete_timebox(id: int, context: Context | None = None) -> dict[str, Any]:
        return _transition("delete", id, context)

    def _archive_timebox(id: int, context: Context | None = None) -> dict[str, Any]:
        return _transition("archive", id, context)

    def _unarchive_timebox(id: int, context: Context | None = None) -> dict[str, Any]:
        return _transition("unarchive", id, context)

    tool_start = server.tool(
        name="start_timebox",
        description="Start or resume a timebox, opening a new work session.",
    )(_start_timebox)

    tool_pause = server.tool(
        name="pause_timebox",
        description="Pause a running timebox and close its open session.",
    )(_pause_timebox)

    tool_stop = server.tool(
        name="stop_timebox",
        description="Manually stop a timebox. A stopped timebox can be started again later.",
    )(_stop_timebox)

    tool_finish = server.tool(
        name="finish_timebox",
        description="Mark a timebox as completed because the work is done.",
    )(_finish_timebox)

    tool_stop_after_time = server.tool(
        name="stop_timebox_after_time",
        description="Complete a timebox because its intended time ran out or the user went idle.",
    )(_stop_timebox_after_time)

    tool_cancel = server.tool(
        name="cancel_timebox",
        description="Cancel a timebox; the open session is cancelled and not counted as work.",
    )(_cancel_timebox)

    tool_delete = server.tool(
        name="delete_timebox",
        description="Soft-delete a timebox. Its sessions and change log stay readable.",
        annotations={"destructiveHint": True},
    )(_delete_timebox)

    tool_archive = server.tool(
        name="archive_timebox",
        description="Hide a timebox from today's list by archiving it.",
    )(_archive_timebox)

    tool_unarchive = server.tool(
        name="unarchive_timebox",
        description="Return an archived timebox to today's list.",
    )(_unarchive_timebox)

    def _reorder_timeboxes(
        orders: list[dict[str, int]],
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Apply manual display order to several timeboxes at once."""

        pairs: list[tuple[int, int]] = []
        for order in orders:
            if "id" not in order or "display_order" not in order:
                raise ValueError("Each order needs 'id' and 'display_order'")
            pairs.append((order["id"], order["display_order"]))
        updated = machine.reorder(pairs)
        _emit_log(context, "info", "Reordered timeboxes", extra={"count": len(updated)})
        return {"updated": [timebox.to_dict() for timebox in updated]}

    tool_reorder = server.tool(
        name="reorder_timeboxes",
        description=(
            "Set display_order for a batch of timeboxes in one transaction. "
            "If an id repeats, its last value wins; an unknown id aborts the whole batch."
        ),
    )(_reorder_timeboxes)

    def _get_timebox(id: int, context: Context | None = None) -> dict[str, Any]:
        view = queries.get(id)
        _emit_log(context, "debug", "Fetched timebox", extra={"timebox_id": id})
        return view.to_dict()

    def _list_view(view_name: str, context: Context | None) -> list[dict[str, Any]]:
        views = getattr(queries, view_name)()
        _emit_log(context, "debug", "Listed timeboxes", extra={"view": view_name, "count": len(views)})
        return [view.to_dict() for view in views]

    def _get_today_timeboxes(context: Context | None = None) -> list[dict[str, Any]]:
        return _list_view("today", context)

    def _get_active_timeboxes(context: Context | None = None) -> list[dict[str, Any]]:
        return _list_view("active", context)

    def _get_archived_timeboxes(context: Context | None = None) -> list[dict[str, Any]]:
        return _list_view("archived", context)

    tool_get = server.tool(
        name="get_timebox",
        description="Fetch one timebox with its sessions and actual, remaining and overtime figures.",
    )(_get_timebox)

    tool_today = server.tool(
        name="get_today_timeboxes",
        description="List today's timeboxes in display order, excluding archived and deleted ones.",
    )(_get_today_timeboxes)

    tool_active = server.tool(
        name="get_active_timeboxes",
        description="List started timeboxes that are not yet completed, cancelled or deleted.",
    )(_get_active_timeboxes)

    tool_archived = server.tool(
        name="get_archived_timeboxes",
        description="List today's archived timeboxes, most recently archived first.",
    )(_get_archived_timeboxes)

    def _get_sessions_for_timebox(
        timebox_id: int, context: Context | None = None
    ) -> list[dict[str, Any]]:
        sessions = queries.sessions(timebox_id)
        _emit_log(
            context,
            "debug",
            "Listed sessions",
            extra={"timebox_id": timebox_id, "count": len(sessions)},
        )
        return [session.to_dict() for session in sessions]

    def _get_active_session_for_timebox(
        timebox_id: int, context: Context | None = None
    ) -> dict[str, Any] | None:
        session = queries.active_session(timebox_id)
        return session.to_dict() if session is not None else None

    def _get_timebox_change_log(
        timebox_id: int, context: Context | None = None
    ) -> list[dict[str, Any]]:
        entries = queries.change_log(timebox_id)
        _emit_log(
            context,
            "debug",
            "Listed change log",
            extra={"timebox_id": timebox_id, "count": len(entries)},
        )
        return [entry.to_dict() for entry in entries]

    tool_sessions = server.tool(
        name="get_sessions_for_timebox",
        description="List every work session of a timebox, newest first, including deleted timeboxes.",
    )(_get_sessions_for_timebox)

    tool_active_session = server.tool(
        name="get_active_session_for_timebox",
        description="Return the open work session of a timebox, or null.",
    )(_get_active_session_for_timebox)

    tool_change_log = server.tool(
        name="get_timebox_change_log",
        description="List the recorded edits to a timebox's intention, notes and duration.",
    )(_get_timebox_change_log)

    def _report_idle_time(idle_seconds: float, context: Context | None = None) -> dict[str, Any]:
        """Feed an OS idle-time reading to the auto-expire monitor."""

        if idle_monitor is None:
            raise RuntimeError("Idle monitor is unavailable")
        expired = idle_monitor.check(idle_seconds)
        if expired:
            _emit_log(
                context,
                "warning",
                "Auto-stopped timeboxes",
                extra={"timebox_ids": [timebox.id for timebox in expired]},
            )
        return {
            "enabled": idle_monitor.enabled,
            "threshold_seconds": idle_monitor.threshold_seconds,
            "tripped": idle_monitor.tripped,
            "auto_stopped": [timebox.to_dict() for timebox in expired],
        }

    tool_idle = server.tool(
        name="report_idle_time",
        description=(
            "Report seconds since the last keyboard or mouse input. When it reaches the "
            f"configured idle timeout ({settings.idle_timeout_minutes} min by default), running "
            "timeboxes are completed with stop_timebox_after_time."
        ),
    )(_report_idle_time)

    return ToolHandles(
        create_timebox=tool_create,
        update_timebox=tool_update,
        start_timebox=tool_start,
        pause_timebox=tool_pause,
        stop_timebox=tool_stop,
        finish_timebox=tool_finish,
        stop_timebox_after_time=tool_stop_after_time,
        cancel_timebox=tool_cancel,
        delete_timebox=tool_delete,
        archive_timebox=tool_archive,
        unarchive_timebox=tool_unarchive,
        reorder_timeboxes=tool_reorder,
        get_timebox=tool_get,
        get_today_timeboxes=tool_today,
        get_active_timeboxes=tool_active,
        get_archived_timeboxes=tool_archived,
        get_sessions_for_timebox=tool_sessions,
        get_active_session_for_timebox=tool_active_session,
        get_timebox_change_log=tool_change_log,
        report_idle_time=tool_idle,
    )


__all__ = ["register_tools", "ToolHandles"]

logger = logging.getLogger(__name__)


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)

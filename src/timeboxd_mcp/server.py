"""FastMCP server bootstrap for timeboxd."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .config import TimeboxdSettings, get_settings
from .core import IdleMonitor, TimeboxQueries, TimeboxStateMachine
from .errors import StorageError
from .storage import TimeboxStore
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the timeboxd server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[TimeboxdSettings] = None,
    store: TimeboxStore | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with the timebox tools and status resource."""

    settings = settings or get_settings()
    logger = logging.getLogger(__name__)

    store = store or TimeboxStore(settings.database_path)
    store_metadata: dict[str, Any] = {
        "available": False,
        "path": str(store.path) if store.path is not None else ":memory:",
        "error": None,
    }
    try:
        store.ping()
        store_metadata["available"] = True
    except StorageError as exc:
        store_metadata["error"] = str(exc)
        logger.error("Timebox database unavailable", extra={"error": str(exc)})

    machine = TimeboxStateMachine(store)
    queries = TimeboxQueries(
        store,
        ledger=machine.ledger,
        change_log=machine.change_log,
        local_tz=settings.tzinfo(),
    )
    idle_monitor = IdleMonitor(
        machine,
        queries,
        enabled=settings.idle_auto_stop_enabled,
        timeout_minutes=settings.idle_timeout_minutes,
    )

    if store_metadata["available"]:
        recovered = queries.active()
        if recovered:
            logger.info(
                "Recovered active timeboxes",
                extra={"count": len(recovered), "timebox_ids": [v.timebox.id for v in recovered]},
            )

    server = FastMCP(
        name="timeboxd",
        version=__version__,
        instructions=(
            "timeboxd tracks intention-driven timeboxes. Create a timebox with an intention "
            "and an intended duration, then start, pause, stop, finish or cancel it; every "
            "stretch of work is recorded as a session and edits are kept in a change log."
        ),
    )

    handles = register_tools(
        server,
        settings=settings,
        machine=machine,
        queries=queries,
        idle_monitor=idle_monitor,
    )

    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing basic runtime state."""

        status_counts: dict[str, int] = {}
        running_count = 0
        storage_error = store_metadata["error"]
        if store_metadata["available"]:
            try:
                for view in queries.today():
                    status = view.timebox.status.value
                    status_counts[status] = status_counts.get(status, 0) + 1
                running_count = len(queries.running())
            except StorageError as exc:
                storage_error = str(exc)

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": settings.log_level,
            "storage": {**store_metadata, "error": storage_error},
            "idle": {
                "enabled": idle_monitor.enabled,
                "timeout_minutes": idle_monitor.timeout_minutes,
                "tripped": idle_monitor.tripped,
            },
            "timeboxes": {
                "today": sum(status_counts.values()),
                "status_counts": status_counts,
                "running": running_count,
            },
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    server.resource(
        "resource://timeboxd/status",
        name="timeboxd_status",
        title="timeboxd Status",
        description="Provides the current runtime status for the timeboxd MCP server.",
        mime_type="application/json",
        tags={"status", "health"},
    )(status_resource)

    setattr(server, "store", store)
    setattr(server, "store_metadata", store_metadata)
    setattr(server, "machine", machine)
    setattr(server, "queries", queries)
    setattr(server, "idle_monitor", idle_monitor)
    setattr(server, "tool_handles", handles)
    setattr(server, "status_resource", status_resource)
    return server


def main() -> None:
    """Entry point for running the timeboxd MCP server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching timeboxd MCP server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "database": getattr(server, "store_metadata", {}).get("path"),
            "store_available": getattr(server, "store_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()

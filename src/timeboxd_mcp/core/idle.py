"""Auto-expire running timeboxes after sustained user inactivity."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from ..errors import TimeboxError
from .machine import TimeboxStateMachine
from .queries import TimeboxQueries
from .records import Timebox

logger = logging.getLogger(__name__)


class IdleMonitor:
    """Turn idle-time readings into ``stop_after_time`` transitions.

    The monitor does not read OS idle time itself; a caller reports the number
    of seconds since the last input. Once it has expired the running timeboxes
    it stays latched until the reported idle time falls back under the
    threshold, so one idle stretch fires once.
    """

    def __init__(
        self,
        machine: TimeboxStateMachine,
        queries: TimeboxQueries,
        *,
        enabled: bool = True,
        timeout_minutes: int = 5,
    ) -> None:
        self._machine = machine
        self._queries = queries
        self.enabled = enabled
        self.timeout_minutes = timeout_minutes
        self._tripped = False

    @property
    def threshold_seconds(self) -> int:
        return self.timeout_minutes * 60

    @property
    def tripped(self) -> bool:
        return self._tripped

    def check(self, idle_seconds: float) -> list[Timebox]:
        """Expire in-progress timeboxes if ``idle_seconds`` crosses the threshold."""

        if not self.enabled:
            self._tripped = False
            return []

        if idle_seconds < self.threshold_seconds:
            if self._tripped:
                logger.info("User active again", extra={"idle_seconds": idle_seconds})
            self._tripped = False
            return []

        if self._tripped:
            return []

        running = [view.timebox for view in self._queries.running()]
        if not running:
            return []

        expired = [self._machine.stop_after_time(timebox.id) for timebox in running]
        self._tripped = True
        logger.warning(
            "Auto-stopped timeboxes after inactivity",
            extra={
                "idle_seconds": idle_seconds,
                "threshold": self.threshold_seconds,
                "timebox_ids": [timebox.id for timebox in expired],
            },
        )
        return expired

    def poll(
        self,
        idle_source: Callable[[], float],
        stop_event: threading.Event,
        *,
        interval: float = 30.0,
    ) -> None:
        """Check ``idle_source`` every ``interval`` seconds until ``stop_event`` is set."""

        while not stop_event.is_set():
            try:
                self.check(idle_source())
            except (TimeboxError, OSError):
                logger.exception("Failed to check idle time")
            stop_event.wait(interval)


__all__ = ["IdleMonitor"]

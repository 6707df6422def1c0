"""Periodic driver for sync passes.

Runs one pass immediately, then one every ``interval_hours`` (6 by default)
until :meth:`ScheduledSyncService.stop` is called or the task running
:meth:`ScheduledSyncService.run_forever` is cancelled.  A pass that raises
is logged and the loop keeps going; the next pass is the retry.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Awaitable, Callable

import structlog

from src.models.sync import SyncRunReport

logger = structlog.get_logger(logger_name=__name__)


class ScheduledSyncService:
    """Calls *run_once* on a fixed interval.

    Parameters
    ----------
    run_once:
        Coroutine function performing one full pass and returning its report.
    interval_hours:
        Delay between the end of one pass and the start of the next.
    run_on_start:
        Whether the first pass starts immediately (default) or after one
        interval.
    """

    def __init__(
        self,
        run_once: Callable[[], Awaitable[SyncRunReport]],
        interval_hours: float = 6.0,
        run_on_start: bool = True,
    ) -> None:
        if interval_hours <= 0:
            raise ValueError("interval_hours must be positive")
        self._run_once = run_once
        self._interval = interval_hours * 3600.0
        self._run_on_start = run_on_start
        self._stop_event = asyncio.Event()
        self.runs = 0

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def stop(self) -> None:
        """Ask the loop to exit after the current pass (or wait) ends."""
        self._stop_event.set()

    async def run_forever(self) -> None:
        logger.info("scheduler_started", interval_hours=self._interval / 3600.0)

        if not self._run_on_start and await self._wait_interval():
            logger.info("scheduler_stopped", runs=self.runs)
            return

        while not self._stop_event.is_set():
            start = time.monotonic()
            self.runs += 1
            try:
                report = await self._run_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.error("scheduled_run_failed", run=self.runs, error=str(exc), error_type=type(exc).__name__)
            else:
                if report.exit_code == 0:
                    logger.info("scheduled_run_complete", run=self.runs, run_id=report.run_id)
                else:
                    logger.warning(
                        "scheduled_run_incomplete", run=self.runs, run_id=report.run_id, exit_code=report.exit_code
                    )

            logger.info(
                "scheduled_run_finished",
                elapsed_s=round(time.monotonic() - start, 2),
                next_run_in_s=self._interval,
            )
            if await self._wait_interval():
                break

        logger.info("scheduler_stopped", runs=self.runs)

    async def _wait_interval(self) -> bool:
        """Sleep for one interval; return ``True`` if stop was requested."""
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
        return self._stop_event.is_set()

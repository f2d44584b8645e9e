"""Interval timer that fires processing passes without waiting for them."""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Set

from uniqueifier.utils.logger import log_debug, log_error, log_info

PassAction = Callable[[], Awaitable[Any]]


class PassScheduler:
    """Fires ``action`` every ``interval_seconds`` on the running event loop.

    Each firing runs as its own task so the timer never blocks on a pass.
    Overlap suppression belongs to the action: ``FileMover.process_files``
    drops a firing while a previous pass is still running.
    """

    def __init__(self, action: PassAction, interval_seconds: float, name: str = "file_mover"):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.action = action
        self.interval_seconds = interval_seconds
        self.name = name
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._fired = 0

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def fired(self) -> int:
        return self._fired

    def start(self) -> None:
        """Start firing; the first firing happens immediately."""
        if self.running:
            return
        self._timer = asyncio.get_running_loop().create_task(
            self._run(), name=f"{self.name}_timer"
        )
        log_info("Scheduler started", scheduler=self.name, interval_seconds=self.interval_seconds)

    def stop(self) -> None:
        """Stop future firings; a pass already running is left to finish."""
        if not self.running:
            return
        self._timer.cancel()
        self._timer = None
        log_info("Scheduler stopped", scheduler=self.name, in_flight=len(self._in_flight))

    async def wait_idle(self) -> None:
        """Wait for every pass started by this scheduler to finish."""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def _run(self) -> None:
        while True:
            self._fire()
            await asyncio.sleep(self.interval_seconds)

    def _fire(self) -> None:
        self._fired += 1
        task = asyncio.get_running_loop().create_task(
            self._run_action(), name=f"{self.name}_pass_{self._fired}"
        )
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _run_action(self) -> None:
        try:
            result = await self.action()
            if result is None:
                log_debug("Scheduled pass dropped, previous pass still running", scheduler=self.name)
        except Exception as e:
            log_error(
                "Scheduled pass failed",
                scheduler=self.name,
                error=str(e),
                error_type=type(e).__name__,
            )

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from ..core.civil_time import CIVIL_OFFSET
from ..core.recurrence import RETENTION_WINDOW, tick
from ..data import ChannelState, SharedStateChannel
from ..domain import EventItem

logger = logging.getLogger(__name__)


class RecurrenceRunner:
    """Runs the recurrence tick on the events channel in one background task.

    The task wakes every ``interval`` seconds and whenever the channel value
    changes. A single task means ticks never overlap.
    """

    def __init__(
        self,
        events: SharedStateChannel[List[EventItem]],
        *,
        clock: Callable[[], datetime],
        interval: float = 15.0,
        retention: timedelta = RETENTION_WINDOW,
        offset: timedelta = CIVIL_OFFSET,
    ) -> None:
        self._events = events
        self._clock = clock
        self._interval = interval
        self._retention = retention
        self._offset = offset
        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self._unwatch: Optional[Callable[[], None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            logger.warning("Recurrence runner already started")
            return
        self._unwatch = self._events.watch(self._on_change)
        self._task = asyncio.create_task(self._loop(), name="recurrence-tick")
        logger.info("Recurrence runner started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Recurrence runner stopped")

    def run_once(self) -> bool:
        """Tick the current snapshot; return True when a replacement was installed."""

        if self._events.closed or self._events.state is not ChannelState.READY:
            return False
        current = self._events.value
        updated = tick(current, self._clock(), retention=self._retention, offset=self._offset)
        if updated == current:
            return False
        self._events.set_value(lambda _: updated)
        return True

    def _on_change(self, _events: List[EventItem]) -> None:
        self._wake.set()

    async def _loop(self) -> None:
        try:
            while True:
                try:
                    self.run_once()
                except Exception:
                    logger.exception("Recurrence tick failed")
                # Our own write above also woke us; that wake-up carries no news.
                self._wake.clear()
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.debug("Recurrence loop cancelled")
            raise

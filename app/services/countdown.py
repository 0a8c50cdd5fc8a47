"""Cooldown countdowns shown to free users after a consumed request.

A countdown only carries display state. It ticks once per ``period`` on the
running event loop, from ``seconds`` down to zero, then disarms itself and
resets to ``seconds``. Arming while already running restarts it.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

from app.metrics import countdowns_armed

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], None]


class CountdownTimer:
    def __init__(
        self,
        seconds: int = 30,
        period: float = 1.0,
        on_tick: TickCallback | None = None,
    ) -> None:
        self.seconds = seconds
        self.period = period
        self.on_tick = on_tick
        self.remaining = seconds
        self._task: asyncio.Task | None = None

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self) -> None:
        """Start from ``seconds``; a running countdown is replaced."""
        if self.armed:
            self._task.cancel()
        else:
            countdowns_armed.inc()
        self.remaining = self.seconds
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        if self.armed:
            self._task.cancel()
            countdowns_armed.dec()
        self._task = None
        self.remaining = self.seconds

    async def _run(self) -> None:
        while self.remaining > 0:
            await asyncio.sleep(self.period)
            self.remaining -= 1
            if self.on_tick is not None:
                self.on_tick(self.remaining)
        self.remaining = self.seconds
        countdowns_armed.dec()

    async def wait(self) -> None:
        """Wait until the current countdown finishes or is cancelled."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass


class CountdownRegistry:
    """One countdown per user id."""

    def __init__(self, seconds: int = 30, period: float = 1.0) -> None:
        self.seconds = seconds
        self.period = period
        self._timers: dict[str, CountdownTimer] = {}

    def arm(self, user_id: str) -> CountdownTimer:
        timer = self._timers.get(user_id)
        if timer is None:
            timer = CountdownTimer(self.seconds, self.period)
            self._timers[user_id] = timer
        timer.arm()
        logger.debug("countdown armed for %s", user_id)
        return timer

    def remaining(self, user_id: str) -> int:
        """Seconds left on the user's countdown, 0 when none is armed."""
        timer = self._timers.get(user_id)
        if timer is None or not timer.armed:
            return 0
        return timer.remaining

    def get(self, user_id: str) -> CountdownTimer | None:
        return self._timers.get(user_id)

    def cancel(self, user_id: str) -> None:
        timer = self._timers.pop(user_id, None)
        if timer is not None:
            timer.cancel()

    def cancel_all(self) -> None:
        for user_id in list(self._timers):
            self.cancel(user_id)


__all__ = ["CountdownTimer", "CountdownRegistry"]

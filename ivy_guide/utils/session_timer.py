"""
Session Timer

A single cancellable countdown. It ticks once per ``tick_s`` of wall-clock
time, decrementing only while ``is_active()`` holds, and calls ``on_expire``
as soon as it reaches zero.
"""

import asyncio
from typing import Callable, Optional

from ivy_guide.utils.logger import get_logger


class SessionTimer:
    """Countdown that preempts the conversation when it runs out."""

    def __init__(
        self,
        duration_s: int,
        on_expire: Callable[[], None],
        on_tick: Optional[Callable[[int], None]] = None,
        is_active: Optional[Callable[[], bool]] = None,
        tick_s: float = 1.0,
        correlation_id: Optional[str] = None,
    ) -> None:
        """
        Args:
            duration_s: Countdown length in ticks (seconds at the default tick)
            on_expire: Called once when the countdown reaches zero
            on_tick: Called with the remaining value after each decrement
            is_active: Ticks only count while this returns True (default: always)
            tick_s: Wall-clock length of one tick
            correlation_id: Correlation ID for logging
        """
        self.duration_s = duration_s
        self.remaining = duration_s
        self.on_expire = on_expire
        self.on_tick = on_tick
        self.is_active = is_active or (lambda: True)
        self.tick_s = tick_s
        self.expired = False
        self._task: Optional[asyncio.Task[None]] = None
        self.logger = get_logger(correlation_id=correlation_id, component="session_timer")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start counting down. No-op if already running or expired."""
        if self.running or self.expired:
            return
        self.logger.info("Session timer started", remaining_s=self.remaining)
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while self.remaining > 0:
            await asyncio.sleep(self.tick_s)
            if not self.is_active():
                continue
            self.remaining -= 1
            if self.on_tick is not None:
                self.on_tick(self.remaining)

        self.expired = True
        self.logger.info("Session timer expired")
        self.on_expire()

    def cancel(self) -> None:
        """Stop the countdown so no expiry can fire."""
        if (
            self._task is not None
            and not self._task.done()
            and self._task is not asyncio.current_task()
        ):
            self._task.cancel()
            self.logger.info("Session timer cancelled", remaining_s=self.remaining)
        self._task = None

"""Typed text reveal paced to audio duration.

The schedule itself is a pure function; TextReveal runs it as a cancellable
asyncio task that pushes each revealed prefix to a sink.
"""

import asyncio
from typing import Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

REVEAL_CURSOR = "▒"

RevealSink = Callable[[str], None]


def ms_per_char(
    text: str, duration_ms: Optional[float], fallback_ms_per_char: float
) -> float:
    """Reveal interval per character.

    Uses ``duration_ms / len(text)`` when both are positive, otherwise the
    fixed fallback pace (unknown duration, or synthesis failed).
    """
    if duration_ms and duration_ms > 0 and text:
        return duration_ms / len(text)
    return fallback_ms_per_char


def reveal_schedule(
    text: str, duration_ms: Optional[float], fallback_ms_per_char: float = 50.0
) -> list[tuple[float, str]]:
    """
    Compute the reveal schedule for ``text``.

    Args:
        text: Full text to reveal
        duration_ms: Audio duration in milliseconds, None or 0 when unknown
        fallback_ms_per_char: Pace used without a usable duration

    Returns:
        ``(elapsed_ms, revealed_prefix)`` pairs, one per character, the last
        one being the full text
    """
    interval = ms_per_char(text, duration_ms, fallback_ms_per_char)
    return [(interval * (i + 1), text[: i + 1]) for i in range(len(text))]


class TextReveal:
    """Cancellable producer that walks a reveal schedule in real time."""

    def __init__(
        self,
        text: str,
        sink: RevealSink,
        duration_ms: Optional[float] = None,
        fallback_ms_per_char: float = 50.0,
    ) -> None:
        self.text = text
        self.sink = sink
        self.schedule = reveal_schedule(text, duration_ms, fallback_ms_per_char)
        self.revealed = ""
        self.finalized = False
        self._task: Optional[asyncio.Task[None]] = None

    def start(self) -> None:
        """Show the cursor and start revealing in the background."""
        self.sink(REVEAL_CURSOR)
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        elapsed = 0.0
        for at_ms, prefix in self.schedule:
            await asyncio.sleep((at_ms - elapsed) / 1000)
            elapsed = at_ms
            self.revealed = prefix
            self.sink(prefix + REVEAL_CURSOR)
        self.finish()

    async def wait(self) -> None:
        """Wait until the reveal has run to completion or been stopped."""
        if self._task is not None:
            try:
                await asyncio.shield(self._task)
            except asyncio.CancelledError:
                if not self._task.cancelled():
                    raise

    def finish(self) -> None:
        """Finalize to the full text."""
        self._finalize(self.text)

    def freeze(self) -> None:
        """Stop early and finalize to what has been revealed so far."""
        self._finalize(self.revealed)

    def _finalize(self, content: str) -> None:
        if self.finalized:
            return
        self.finalized = True
        if (
            self._task is not None
            and not self._task.done()
            and self._task is not asyncio.current_task()
        ):
            self._task.cancel()
        self.sink(content)
        logger.debug(
            "reveal_finalized", revealed_chars=len(content), total_chars=len(self.text)
        )

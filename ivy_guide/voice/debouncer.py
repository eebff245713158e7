"""
Utterance Debouncer

Coalesces incremental speech-recognition fragments into committed utterances.
Final fragments accumulate in a buffer, interim fragments only update the live
display, and the buffer is committed once no fragment has arrived for the
configured quiet interval.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ivy_guide.utils.logger import get_logger

CommitHandler = Callable[[str], Awaitable[None]]


class TranscriptFragment(BaseModel):
    """One recognition result segment."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str = Field(alias="transcriptFragment")
    is_final: bool = Field(default=False, alias="isFinal")


class UtteranceDebouncer:
    """Debounces transcript fragments into utterances."""

    def __init__(
        self,
        on_commit: CommitHandler,
        quiet_interval_s: float = 1.2,
        correlation_id: Optional[str] = None,
    ) -> None:
        """
        Args:
            on_commit: Coroutine called with each committed utterance
            quiet_interval_s: Silence required before committing
            correlation_id: Correlation ID for logging
        """
        self.on_commit = on_commit
        self.quiet_interval_s = quiet_interval_s
        self._final_segments: list[str] = []
        self._interim = ""
        self._timer: Optional[asyncio.Task[None]] = None
        self.logger = get_logger(
            correlation_id=correlation_id, component="utterance_debouncer"
        )

    @property
    def final_text(self) -> str:
        """Finalized text accumulated since the last commit."""
        return " ".join(self._final_segments)

    @property
    def current_transcript(self) -> str:
        """Live transcript: final buffer followed by the interim display."""
        return " ".join(part for part in (self.final_text, self._interim) if part)

    @property
    def pending(self) -> bool:
        """True while a quiet-interval timer is running."""
        return self._timer is not None and not self._timer.done()

    def push(self, fragments: Sequence[TranscriptFragment]) -> None:
        """
        Accept the fragments of one recognition event and restart the quiet timer.

        Final fragments are appended to the buffer; the interim display is
        replaced by the non-final fragments of this event.
        """
        interim_parts: list[str] = []
        for fragment in fragments:
            text = fragment.text.strip()
            if not text:
                continue
            if fragment.is_final:
                self._final_segments.append(text)
            else:
                interim_parts.append(text)
        self._interim = " ".join(interim_parts)

        self.logger.debug(
            "Fragments received",
            fragment_count=len(fragments),
            transcript_length=len(self.current_transcript),
        )
        self._restart_timer()

    def _restart_timer(self) -> None:
        self._cancel_timer()
        self._timer = asyncio.create_task(self._commit_after_quiet())

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _commit_after_quiet(self) -> None:
        await asyncio.sleep(self.quiet_interval_s)
        self._timer = None
        await self._commit()

    async def flush(self) -> None:
        """Commit the final buffer now (explicit submission)."""
        self._cancel_timer()
        await self._commit()

    async def _commit(self) -> None:
        text = self.final_text.strip()
        self.clear()
        if not text:
            self.logger.debug("Quiet interval elapsed with empty buffer, nothing committed")
            return
        self.logger.info("Utterance committed", utterance_length=len(text))
        await self.on_commit(text)

    def clear(self) -> None:
        """Drop both buffers without committing."""
        self._final_segments = []
        self._interim = ""

    def cancel(self) -> None:
        """Cancel any pending commit and drop both buffers."""
        self._cancel_timer()
        self.clear()

"""
Speech I/O Adapter

Wraps the two external speech capabilities behind one adapter:

- Continuous capture: the backend is started/stopped by the adapter and pushes
  CaptureEvent values back through handle_capture_event(). Results are forwarded
  to the utterance debouncer, and any result arriving while the assistant is
  speaking stops playback first (barge-in).
- Synthesis: text is synthesized, played, and revealed as typed text paced to
  the audio duration. Only one playback exists at a time.

Neither capability is required. Without capture the session runs on typed
input; without synthesis (or when it fails) the text is still revealed at the
fallback pace.
"""

import asyncio
from typing import Callable, Literal, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from ivy_guide.models.config import TimingConfig, VoiceConfig
from ivy_guide.models.errors import CaptureUnavailableError
from ivy_guide.models.session import Notice, VoiceState
from ivy_guide.utils.logger import get_logger
from ivy_guide.voice.debouncer import TranscriptFragment
from ivy_guide.voice.reveal import RevealSink, TextReveal

CaptureEventKind = Literal["start", "end", "result", "error", "audio_start", "audio_end"]

FragmentHandler = Callable[[Sequence[TranscriptFragment]], None]
NoticeHandler = Callable[[Notice], None]


class CaptureEvent(BaseModel):
    """Lifecycle or result event emitted by the capture capability."""

    kind: CaptureEventKind
    fragments: list[TranscriptFragment] = Field(default_factory=list)
    error: Optional[str] = None


class SynthesizedAudio(BaseModel):
    """Playable audio returned by the synthesis capability."""

    data: bytes = b""
    mime_type: str = "audio/wav"
    duration_s: Optional[float] = None


class CaptureBackend(Protocol):
    """Continuous speech-to-text capability."""

    def start(self) -> None: ...

    def stop(self) -> None: ...


class SynthesisBackend(Protocol):
    """Text-to-speech capability with a single audio output."""

    async def synthesize(self, text: str) -> SynthesizedAudio: ...

    async def play(self, audio: SynthesizedAudio) -> None:
        """Play audio, returning when playback ends naturally."""
        ...

    def stop(self) -> None:
        """Stop output immediately."""
        ...


class Playback:
    """One assistant utterance being spoken and revealed."""

    def __init__(
        self,
        text: str,
        sink: RevealSink,
        synthesis: Optional[SynthesisBackend],
        timing: TimingConfig,
        on_notice: NoticeHandler,
        logger,
        on_done: Optional[Callable[["Playback"], None]] = None,
    ) -> None:
        self.text = text
        self.sink = sink
        self.synthesis = synthesis
        self.timing = timing
        self.on_notice = on_notice
        self.logger = logger
        self.on_done = on_done
        self.reveal: Optional[TextReveal] = None
        self.audio: Optional[SynthesizedAudio] = None
        self.interrupted = False
        self._task = asyncio.create_task(self._run())

    @property
    def done(self) -> bool:
        return self._task.done()

    async def _synthesize(self) -> Optional[SynthesizedAudio]:
        if self.synthesis is None:
            return None
        try:
            return await self.synthesis.synthesize(self.text)
        except Exception as e:
            self.logger.warning(
                "Speech synthesis failed, revealing text at fallback pace",
                error=str(e),
            )
            self.on_notice(
                Notice(
                    level="warning",
                    title="Could not play audio",
                    description="There was an error generating the voice response.",
                )
            )
            return None

    async def _run(self) -> None:
        try:
            await self._speak()
        finally:
            if self.on_done is not None:
                self.on_done(self)

    async def _speak(self) -> None:
        self.audio = await self._synthesize()
        duration_ms = None
        if self.audio is not None and self.audio.duration_s:
            duration_ms = self.audio.duration_s * 1000

        self.reveal = TextReveal(
            self.text,
            self.sink,
            duration_ms=duration_ms,
            fallback_ms_per_char=self.timing.fallback_ms_per_char,
        )
        self.reveal.start()
        self.logger.debug(
            "Playback started",
            text_length=len(self.text),
            duration_ms=duration_ms,
        )

        if self.audio is not None and self.synthesis is not None:
            try:
                await self.synthesis.play(self.audio)
            except Exception as e:
                self.logger.warning("Audio playback failed", error=str(e))
                await self.reveal.wait()
        else:
            await self.reveal.wait()

        self.reveal.finish()
        self.logger.debug("Playback finished")

    def stop(self) -> None:
        """
        Stop output now and freeze the revealed text.

        A stop before any character was revealed finalizes to the full text,
        so the sink never ends up empty.
        """
        if self.done:
            return
        self.interrupted = True
        self._task.cancel()
        if self.synthesis is not None:
            self.synthesis.stop()
        if self.reveal is None:
            self.sink(self.text)
        elif self.reveal.revealed:
            self.reveal.freeze()
        else:
            self.reveal.finish()
        self.logger.debug("Playback stopped")

    async def wait(self) -> None:
        """Wait for natural end or interruption."""
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise


class SpeechIO:
    """Adapter over the capture and synthesis capabilities."""

    def __init__(
        self,
        capture: Optional[CaptureBackend] = None,
        synthesis: Optional[SynthesisBackend] = None,
        voice_config: Optional[VoiceConfig] = None,
        timing: Optional[TimingConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self.capture = capture
        self.synthesis = synthesis
        self.voice_config = voice_config or VoiceConfig()
        self.timing = timing or TimingConfig()
        self.state = VoiceState()
        self.playback: Optional[Playback] = None
        self.on_fragments: FragmentHandler = lambda fragments: None
        self.on_notice: NoticeHandler = lambda notice: None
        self.logger = get_logger(correlation_id=correlation_id, component="speech_io")

    def bind_session(self, correlation_id: str) -> None:
        """Rebind the logger to a new session id."""
        self.logger = get_logger(correlation_id=correlation_id, component="speech_io")

    def bind_state(self, state: VoiceState) -> None:
        """Mirror capture/playback flags into ``state`` (owned by the session)."""
        state.capture_supported = self.state.capture_supported
        state.synthesis_supported = self.state.synthesis_supported
        self.state = state

    def detect_capabilities(self) -> VoiceState:
        """
        Check which capabilities are available.

        A missing capture capability is not an error: a non-blocking notice is
        raised and the session continues on typed input.
        """
        self.state.capture_supported = self.capture is not None and bool(
            getattr(self.capture, "available", True)
        )
        self.state.synthesis_supported = self.synthesis is not None and bool(
            getattr(self.synthesis, "available", True)
        )
        self.logger.info(
            "Speech capabilities detected",
            capture_supported=self.state.capture_supported,
            synthesis_supported=self.state.synthesis_supported,
        )
        if not self.state.capture_supported:
            self.on_notice(
                Notice(
                    level="warning",
                    title="Voice input not supported",
                    description="Speech recognition is unavailable. Please type your responses.",
                )
            )
        return self.state

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------
    def set_capture(self, enabled: bool) -> None:
        """
        Toggle capture on or off.

        Raises:
            CaptureUnavailableError: Turning capture on without the capability,
                or after microphone permission was denied this session
        """
        if not enabled:
            if self.state.is_capturing and self.capture is not None:
                self.capture.stop()
            self.state.is_capturing = False
            self.state.is_speech_detected = False
            self.logger.info("Capture toggled off")
            return

        if not self.state.capture_supported or self.capture is None:
            raise CaptureUnavailableError("Speech capture is not available")
        if self.state.permission_denied:
            raise CaptureUnavailableError(
                "Microphone permission was denied for this session"
            )
        if self.state.is_capturing:
            return
        self.state.is_capturing = True
        self.capture.start()
        self.logger.info("Capture toggled on", language=self.voice_config.language)

    def handle_capture_event(self, event: CaptureEvent) -> None:
        """Process one event from the capture capability."""
        if event.kind == "result":
            self._handle_result(event.fragments)
        elif event.kind == "audio_start":
            self.state.is_speech_detected = True
        elif event.kind == "audio_end":
            self.state.is_speech_detected = False
        elif event.kind == "start":
            self.logger.debug("Capture service started")
        elif event.kind == "end":
            self._handle_end()
        elif event.kind == "error":
            self._handle_error(event.error or "unknown")

    def _handle_result(self, fragments: Sequence[TranscriptFragment]) -> None:
        if not self.state.is_capturing:
            self.logger.debug("Ignoring result received while capture is off")
            return
        if self.is_playing:
            self.logger.info("Barge-in detected, stopping playback")
            self.stop_playback()
        self.on_fragments(fragments)

    def _handle_end(self) -> None:
        self.state.is_speech_detected = False
        if self.state.is_capturing and self.capture is not None:
            self.logger.debug("Capture ended while toggled on, restarting")
            self.capture.start()

    def _handle_error(self, kind: str) -> None:
        if kind in self.voice_config.transient_capture_errors:
            self.logger.debug("Transient capture error ignored", error_kind=kind)
            return

        if kind in self.voice_config.permission_capture_errors:
            self.logger.error("Microphone permission denied", error_kind=kind)
            self.state.permission_denied = True
            self.state.is_capturing = False
            self.state.is_speech_detected = False
            if self.capture is not None:
                self.capture.stop()
            self.on_notice(
                Notice(
                    level="error",
                    title="Microphone permission denied",
                    description=(
                        "Please enable microphone access to use voice features. "
                        "You can keep typing your responses."
                    ),
                    blocking=True,
                )
            )
            return

        self.logger.error("Unexpected capture error", error_kind=kind)
        self.on_notice(
            Notice(
                level="error",
                title="Voice recognition error",
                description=f"An unexpected error occurred: {kind}",
            )
        )

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------
    @property
    def is_playing(self) -> bool:
        return self.playback is not None and not self.playback.done

    def speak(self, text: str, sink: RevealSink) -> Playback:
        """
        Speak ``text`` and reveal it through ``sink``.

        Any playback in progress is stopped (and its text frozen) first.

        Args:
            text: Assistant text to speak
            sink: Receives each revealed state of the text, ending with the
                finalized content

        Returns:
            The new Playback
        """
        self.stop_playback()
        playback = Playback(
            text,
            sink,
            self.synthesis if self.state.synthesis_supported else None,
            self.timing,
            self.on_notice,
            self.logger,
            on_done=self._playback_done,
        )
        self.playback = playback
        self.state.is_speaking = True
        return playback

    def _playback_done(self, playback: Playback) -> None:
        if self.playback is playback:
            self.state.is_speaking = False

    def stop_playback(self) -> None:
        """Synchronously stop any playback in progress."""
        if self.playback is not None:
            self.playback.stop()
        self.state.is_speaking = False

    def shutdown(self) -> None:
        """Stop playback and capture."""
        self.stop_playback()
        self.set_capture(False)

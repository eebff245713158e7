"""
Conversation Orchestrator Module

Owns the Session and drives it through the phases
welcome -> entry-method-choice -> profile-collection -> dialogue -> evaluating -> report,
with restart available from any phase.

Turns are single-flight: at most one dialogue request is in flight, and an
utterance committed meanwhile waits in a one-slot queue (a newer one replaces
it). Every turn and evaluation captures the session epoch when it starts; a
forced timeout or restart bumps the epoch, so any late response is discarded.
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from ivy_guide.agents import onboarding
from ivy_guide.agents.dialogue_agent import DialogueService, LLMDialogueAgent
from ivy_guide.agents.report_synthesizer import LLMReportSynthesizer, ReportService
from ivy_guide.models.config import SessionParams
from ivy_guide.models.conversation import Message, TurnRequest, TurnResponse
from ivy_guide.models.errors import (
    CaptureUnavailableError,
    InvalidPhaseError,
    ProfileValidationError,
)
from ivy_guide.models.profile import PROFILE_FIELDS, ProfileField, StudentProfile
from ivy_guide.models.report import FinalReport, ReportRequest
from ivy_guide.models.session import EntryMethod, Notice, Phase, Session
from ivy_guide.utils.insight_store import merge_insights
from ivy_guide.utils.logger import get_logger
from ivy_guide.utils.session_timer import SessionTimer
from ivy_guide.utils.validator import SESSION_PARAMS_SCHEMA, ConfigValidator
from ivy_guide.voice.debouncer import TranscriptFragment, UtteranceDebouncer
from ivy_guide.voice.speech_io import Playback, SpeechIO

NoticeHandler = Callable[[Notice], None]


class ConversationOrchestrator:
    """
    Session state machine for one career discovery conversation.

    All operations must be called from inside a running event loop; service
    calls, playback and the countdown run as background tasks.
    """

    def __init__(
        self,
        dialogue_service: Optional[DialogueService] = None,
        report_service: Optional[ReportService] = None,
        speech: Optional[SpeechIO] = None,
        session_params: Optional[SessionParams] = None,
        config_path: Optional[str] = None,
        on_notice: Optional[NoticeHandler] = None,
    ):
        """
        Initialize the orchestrator with a fresh session.

        Args:
            dialogue_service: Turn service (LLM agent by default)
            report_service: Report service (LLM agent by default)
            speech: Speech adapter (text-only adapter by default)
            session_params: Parameters to use; takes precedence over config_path
            config_path: Optional session parameters JSON file
            on_notice: Called with every user-visible notice
        """
        self.config_path = Path(config_path) if config_path else None
        self.params = session_params or self._load_config()
        self.session = Session(timer_remaining_s=self.params.timing.session_duration_s)
        self.logger = self._bind_logger()

        self.dialogue_service: DialogueService = dialogue_service or LLMDialogueAgent(
            llm_config=self.params.llm, correlation_id=self.session.id
        )
        self.report_service: ReportService = report_service or LLMReportSynthesizer(
            llm_config=self.params.llm, correlation_id=self.session.id
        )

        self.speech = speech or SpeechIO(
            voice_config=self.params.voice,
            timing=self.params.timing,
            correlation_id=self.session.id,
        )
        self.speech.bind_state(self.session.voice)
        self.speech.on_fragments = self._on_fragments
        self.speech.on_notice = self._notify

        self.debouncer = self._new_debouncer()
        self.timer = self._new_timer()
        self.on_notice = on_notice

        self._epoch = 0
        self._concluding = False
        self._capture_before_evaluation = False
        self._queued_utterance: Optional[str] = None
        self._turn_task: Optional[asyncio.Task[None]] = None
        self._conclusion_task: Optional[asyncio.Task[None]] = None
        self._evaluation_task: Optional[asyncio.Task[None]] = None

        self.logger.info(
            "Conversation orchestrator initialized",
            config_path=str(self.config_path) if self.config_path else None,
            timing=self.params.timing.model_dump(),
        )

    def _load_config(self) -> SessionParams:
        """
        Load and validate session parameters.

        A missing config path or file means defaults.

        Raises:
            ConfigurationError: If the file fails schema validation
            ValueError: If pydantic validation fails
        """
        if self.config_path is None or not self.config_path.exists():
            return SessionParams()

        config_data = ConfigValidator().validate_file(
            self.config_path, SESSION_PARAMS_SCHEMA
        )
        return SessionParams(**config_data)

    def _bind_logger(self):
        return get_logger(
            correlation_id=self.session.id,
            phase=self.session.phase,
            component="conversation_orchestrator",
        )

    def _new_debouncer(self) -> UtteranceDebouncer:
        return UtteranceDebouncer(
            on_commit=self._on_utterance_committed,
            quiet_interval_s=self.params.timing.utterance_pause_s,
            correlation_id=self.session.id,
        )

    def _new_timer(self) -> SessionTimer:
        return SessionTimer(
            duration_s=self.params.timing.session_duration_s,
            on_expire=self._on_timer_expired,
            on_tick=self._on_timer_tick,
            is_active=lambda: self.session.phase == "dialogue",
            tick_s=self.params.timing.timer_tick_s,
            correlation_id=self.session.id,
        )

    # ------------------------------------------------------------------
    # Phase bookkeeping
    # ------------------------------------------------------------------
    @property
    def phase(self) -> Phase:
        return self.session.phase

    @property
    def is_busy(self) -> bool:
        """True while a dialogue turn is in flight."""
        return self._turn_task is not None and not self._turn_task.done()

    @property
    def queued_utterance(self) -> Optional[str]:
        return self._queued_utterance

    def _set_phase(self, phase: Phase) -> None:
        previous = self.session.phase
        self.session.phase = phase
        self.logger = self._bind_logger()
        self.logger.info("Phase transition", from_phase=previous, to_phase=phase)

    def _require_phase(self, operation: str, *allowed: Phase) -> None:
        if self.session.phase not in allowed:
            raise InvalidPhaseError(operation, self.session.phase)

    def _notify(self, notice: Notice) -> None:
        self.session.notices.append(notice)
        if self.on_notice is not None:
            self.on_notice(notice)

    # ------------------------------------------------------------------
    # Welcome and profile collection
    # ------------------------------------------------------------------
    def begin(self) -> None:
        """Leave the welcome screen: detect speech capabilities, then offer entry methods."""
        self._require_phase("begin", "welcome")
        self.speech.detect_capabilities()
        self._set_phase("entry-method-choice")

    def choose_entry_method(self, method: EntryMethod) -> Optional[Playback]:
        """
        Pick the profile-collection path.

        The voice path asks the first onboarding question immediately.

        Returns:
            Playback of the first question on the voice path, None for the form
        """
        self._require_phase("choose an entry method", "entry-method-choice")
        self.session.entry_method = method
        self._set_phase("profile-collection")
        if method == "voice":
            return self._ask_onboarding(onboarding.first_field())
        return None

    def submit_profile_form(self, form: Mapping[str, Any]) -> None:
        """
        Submit all profile fields at once and start the dialogue.

        Args:
            form: Field values keyed by profile field name

        Raises:
            ProfileValidationError: If name is missing or blank
            InvalidPhaseError: Outside profile collection
        """
        self._require_phase("submit the profile form", "profile-collection")
        values = {field: form.get(field) for field in PROFILE_FIELDS}
        name = (values.get("name") or "").strip()
        if not name:
            self.logger.warning("Profile form rejected", missing_field="name")
            raise ProfileValidationError("name")

        self.session.profile = StudentProfile(
            name=name,
            grade=(values.get("grade") or "").strip(),
            curriculum=(values.get("curriculum") or "").strip(),
            stream=(values.get("stream") or "").strip() or None,
            country=(values.get("country") or "").strip(),
        )
        self.session.entry_method = "form"
        self._start_dialogue()

    def _ask_onboarding(self, field: ProfileField) -> Playback:
        self.session.onboarding_field = field
        question = onboarding.question_for(field, self.session.profile)
        self.logger.info("Onboarding question asked", field=field)

        def sink(content: str) -> None:
            self.session.onboarding_prompt = content

        return self.speech.speak(question, sink)

    def _answer_onboarding(self, utterance: str) -> None:
        field = self.session.onboarding_field
        if field is None:
            return
        self.session.profile = onboarding.apply_answer(
            self.session.profile, field, utterance
        )
        self.logger.info("Onboarding field committed", field=field)

        following = onboarding.next_field(field)
        if following is None:
            self.session.onboarding_field = None
            self.session.onboarding_prompt = ""
            self._start_dialogue()
        else:
            self._ask_onboarding(following)

    # ------------------------------------------------------------------
    # Utterance intake
    # ------------------------------------------------------------------
    def _on_fragments(self, fragments: list[TranscriptFragment]) -> None:
        self.debouncer.push(fragments)
        self.session.voice.live_transcript = self.debouncer.current_transcript

    async def _on_utterance_committed(self, text: str) -> None:
        self.session.voice.live_transcript = ""
        self.submit_utterance(text)

    def submit_utterance(self, text: str) -> None:
        """
        Route one committed utterance according to the current phase.

        Voice onboarding consumes it as the answer to the current question;
        the dialogue turns it into a turn request. Utterances arriving in any
        other phase are ignored.
        """
        text = text.strip()
        if not text:
            self.logger.debug("Whitespace-only utterance discarded")
            return

        phase = self.session.phase
        if phase == "profile-collection" and self.session.entry_method == "voice":
            self._answer_onboarding(text)
        elif phase == "dialogue" and self._concluding:
            self.logger.warning(
                "Utterance dropped, conversation is concluding", text_length=len(text)
            )
        elif phase == "dialogue":
            # a reply being revealed is frozen before the user's text is appended
            self.speech.stop_playback()
            self._request_turn(text)
        else:
            self.logger.debug("Utterance ignored in current phase", text_length=len(text))

    async def submit_text(self, text: str) -> None:
        """
        Explicit submission from the text box.

        Anything still buffered from speech capture is committed first, then
        ``text`` is submitted as its own utterance.
        """
        await self.debouncer.flush()
        self.session.voice.live_transcript = ""
        self.submit_utterance(text)

    def toggle_capture(self, enabled: Optional[bool] = None) -> bool:
        """
        Turn speech capture on or off (flip when ``enabled`` is None).

        Returns:
            New capture state

        Raises:
            CaptureUnavailableError: If capture cannot be turned on
        """
        target = not self.session.voice.is_capturing if enabled is None else enabled
        self.speech.set_capture(target)
        if not target:
            self.debouncer.cancel()
            self.session.voice.live_transcript = ""
        return self.session.voice.is_capturing

    # ------------------------------------------------------------------
    # Dialogue
    # ------------------------------------------------------------------
    def _start_dialogue(self) -> None:
        self._set_phase("dialogue")
        self.logger.info(
            "Dialogue started",
            entry_method=self.session.entry_method,
            has_stream=self.session.profile.stream is not None,
        )
        self._request_turn(None)

    def _request_turn(self, text: Optional[str]) -> None:
        if self._concluding:
            self.logger.warning(
                "Utterance dropped, conversation is concluding",
                dropped_length=len(text or ""),
            )
            return
        if self.is_busy:
            if text is None:
                return
            if self._queued_utterance is not None:
                self.logger.warning(
                    "Queued utterance replaced by a newer one",
                    replaced_text=self._queued_utterance,
                    replaced_length=len(self._queued_utterance),
                )
            self._queued_utterance = text
            self.logger.info("Turn in flight, utterance queued", text_length=len(text))
            return
        self._turn_task = asyncio.create_task(self._turn_loop(text))

    async def _turn_loop(self, text: Optional[str]) -> None:
        epoch = self._epoch
        next_text: Optional[str] = text
        while True:
            await self._run_turn(next_text, epoch)
            if self._concluding:
                return
            playback = self.speech.playback
            if self._queued_utterance is not None and playback is not None:
                # the queued utterance follows the reply, unless the user barges in
                await playback.wait()
            if self._queued_utterance is None:
                return
            if epoch != self._epoch or self.session.phase != "dialogue":
                self.logger.warning(
                    "Queued utterance dropped, dialogue has ended",
                    dropped_length=len(self._queued_utterance),
                )
                self._queued_utterance = None
                return
            next_text, self._queued_utterance = self._queued_utterance, None

    async def _run_turn(self, text: Optional[str], epoch: int) -> None:
        if text is not None:
            self.session.messages.append(Message(role="user", content=text))

        request = TurnRequest(
            profile=self.session.profile,
            conversation_history=[m.model_copy() for m in self.session.messages],
            insights=self.session.insights.model_copy(deep=True),
        )
        self.session.is_thinking = True
        self.logger.info(
            "Turn request issued",
            history_length=len(request.conversation_history),
            insight_count=request.insights.total(),
        )

        try:
            response = await self.dialogue_service.next_turn(request)
        except Exception as e:
            if epoch != self._epoch:
                return
            self.session.is_thinking = False
            self.logger.error("Dialogue turn failed", error=str(e))
            self._notify(
                Notice(
                    level="error",
                    title="Something went wrong",
                    description="I couldn't get a response. Please try saying that again.",
                )
            )
            return

        if epoch != self._epoch or self.session.phase != "dialogue":
            self.logger.warning(
                "Discarding turn response that arrived after the dialogue ended",
                current_phase=self.session.phase,
            )
            return

        self.session.is_thinking = False
        self._apply_turn(response, epoch)

    def _apply_turn(self, response: TurnResponse, epoch: int) -> None:
        before = self.session.insights.total()
        self.session.insights = merge_insights(
            self.session.insights, response.updated_insights
        )
        self.logger.info(
            "Turn response applied",
            prompt_length=len(response.next_prompt),
            new_insights=self.session.insights.total() - before,
            is_concluding=response.is_concluding,
        )

        messages = self.session.messages
        message: Optional[Message] = None

        # appended on the first reveal so the reply follows anything said before it
        def sink(content: str) -> None:
            nonlocal message
            if message is None:
                message = Message(role="assistant", content=content)
                messages.append(message)
            else:
                message.content = content

        playback = self.speech.speak(response.next_prompt, sink)

        if not self.timer.running and not self.timer.expired:
            self.timer.start()
            self.session.timer_running = True

        if response.is_concluding:
            self._concluding = True
            if self._queued_utterance is not None:
                self.logger.warning(
                    "Queued utterance dropped, conversation is concluding",
                    dropped_length=len(self._queued_utterance),
                )
                self._queued_utterance = None
            self.logger.info("Conversation concluding after current playback")
            self._conclusion_task = asyncio.create_task(
                self._conclude_after(playback, epoch)
            )

    async def _conclude_after(self, playback: Playback, epoch: int) -> None:
        await playback.wait()
        if epoch != self._epoch or self.session.phase != "dialogue":
            return
        self._enter_evaluating("concluded")

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------
    def _on_timer_tick(self, remaining: int) -> None:
        self.session.timer_remaining_s = remaining

    def _on_timer_expired(self) -> None:
        self.session.timer_remaining_s = 0
        self.session.timer_running = False
        if self.session.phase == "dialogue":
            self._enter_evaluating("timeout")

    # ------------------------------------------------------------------
    # Evaluation and report
    # ------------------------------------------------------------------
    def end_session(self, reason: str = "ended") -> None:
        """
        Finish the conversation now and start evaluation.

        Raises:
            InvalidPhaseError: Outside the dialogue phase
        """
        self._require_phase("end the session", "dialogue")
        self._enter_evaluating(reason)

    def _enter_evaluating(self, reason: str) -> None:
        self._capture_before_evaluation = self.session.voice.is_capturing
        self.speech.stop_playback()
        self.speech.set_capture(False)
        self.debouncer.cancel()
        self.session.voice.live_transcript = ""

        self._epoch += 1
        self._cancel(self._turn_task)
        self._turn_task = None
        if self._queued_utterance is not None:
            self.logger.warning(
                "Queued utterance dropped, dialogue has ended",
                dropped_length=len(self._queued_utterance),
            )
            self._queued_utterance = None

        self.timer.cancel()
        self.session.timer_running = False
        self.session.is_thinking = True
        self._set_phase("evaluating")
        self.logger.info(
            "Evaluation started",
            reason=reason,
            insight_count=self.session.insights.total(),
            message_count=len(self.session.messages),
        )
        self._evaluation_task = asyncio.create_task(self._evaluate(self._epoch))

    def _restore_capture(self) -> None:
        if not self._capture_before_evaluation:
            return
        try:
            self.toggle_capture(True)
        except CaptureUnavailableError as e:
            self.logger.warning("Could not resume capture", error=str(e))

    async def _evaluate(self, epoch: int) -> None:
        request = ReportRequest(
            profile=self.session.profile,
            insights=self.session.insights.model_copy(deep=True),
        )
        try:
            synthesis = await self.report_service.synthesize_report(request)
        except Exception as e:
            if epoch != self._epoch:
                return
            self.logger.error("Report synthesis failed", error=str(e))
            self.session.is_thinking = False
            self._notify(
                Notice(
                    level="error",
                    title="Could not generate your report",
                    description="Let's keep talking for a bit and try again.",
                )
            )
            self._concluding = False
            self._set_phase("dialogue")
            self._restore_capture()
            if self.timer.remaining > 0:
                self.timer.start()
                self.session.timer_running = self.timer.running
            return

        if epoch != self._epoch:
            return
        self.logger.info(
            "Report synthesized",
            path_count=len(synthesis.recommended_paths),
            display_delay_s=self.params.timing.evaluation_display_delay_s,
        )

        await asyncio.sleep(self.params.timing.evaluation_display_delay_s)
        if epoch != self._epoch:
            return

        self.session.final_report = FinalReport.from_synthesis(
            profile=self.session.profile,
            insights=self.session.insights,
            synthesis=synthesis,
            generated_at=datetime.now(timezone.utc).isoformat(),
        )
        self.session.is_thinking = False
        self._set_phase("report")

    # ------------------------------------------------------------------
    # Restart and shutdown
    # ------------------------------------------------------------------
    def restart(self) -> None:
        """Discard the session and return to a fresh welcome phase."""
        self._epoch += 1
        for task in (self._turn_task, self._conclusion_task, self._evaluation_task):
            self._cancel(task)
        self._turn_task = None
        self._conclusion_task = None
        self._evaluation_task = None
        self._queued_utterance = None
        self._concluding = False
        self._capture_before_evaluation = False

        self.timer.cancel()
        self.debouncer.cancel()
        self.speech.shutdown()

        previous_id = self.session.id
        self.session = Session(timer_remaining_s=self.params.timing.session_duration_s)
        self.speech.bind_state(self.session.voice)
        self.logger = self._bind_logger()
        self.timer = self._new_timer()
        self.debouncer = self._new_debouncer()
        for component in (self.dialogue_service, self.report_service, self.speech):
            bind_session = getattr(component, "bind_session", None)
            if bind_session is not None:
                bind_session(self.session.id)
        self.logger.info("Session restarted", previous_session_id=previous_id)

    async def shutdown(self) -> None:
        """Cancel every background task and release the speech adapter."""
        self._epoch += 1
        tasks = [
            t
            for t in (self._turn_task, self._conclusion_task, self._evaluation_task)
            if t is not None and not t.done()
        ]
        for task in tasks:
            task.cancel()
        self.timer.cancel()
        self.debouncer.cancel()
        self.speech.shutdown()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.logger.info("Conversation orchestrator shut down")

    @staticmethod
    def _cancel(task: Optional[asyncio.Task]) -> None:
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def settle(self) -> None:
        """
        Wait until no turn, playback, conclusion or evaluation work is pending.

        Used by the terminal front end between prompts, and by tests.
        """
        while True:
            pending = [
                t
                for t in (self._turn_task, self._conclusion_task, self._evaluation_task)
                if t is not None and not t.done()
            ]
            playback = self.speech.playback
            if playback is not None and not playback.done:
                pending.append(asyncio.ensure_future(playback.wait()))
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

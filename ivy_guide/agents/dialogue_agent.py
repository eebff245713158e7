"""
Dialogue Turn Agent

LLM-backed implementation of the dialogue turn service: given the student
profile, the full history and the current insights, produce the next prompt,
any newly extracted insights and the conclusion flag.
"""

from typing import Optional, Protocol, Sequence

from ivy_guide.models.config import LLMConfig
from ivy_guide.models.conversation import Message, TurnRequest, TurnResponse
from ivy_guide.utils.llm_helpers import call_llm_with_retry, parse_json_response
from ivy_guide.utils.logger import get_logger
from ivy_guide.utils.prompt_loader import render_prompt

TURN_TEMPLATE = "conversation/next_turn.j2"

HISTORY_SPEAKERS = {"user": "Student", "assistant": "You"}


class DialogueService(Protocol):
    """Asynchronous request/response contract for one conversation turn."""

    async def next_turn(self, request: TurnRequest) -> TurnResponse: ...


def format_history(messages: Sequence[Message]) -> list[str]:
    """
    Format history lines as seen from the guide's side of the conversation.

    Args:
        messages: Conversation history

    Returns:
        One "Student: ..." or "You: ..." line per message
    """
    return [f"{HISTORY_SPEAKERS[m.role]}: {m.content}" for m in messages]


class LLMDialogueAgent:
    """Dialogue turn service backed by the LLM."""

    def __init__(
        self,
        llm_config: Optional[LLMConfig] = None,
        correlation_id: Optional[str] = None,
    ):
        """
        Initialize dialogue agent.

        Args:
            llm_config: LLM settings (system prompt, model override)
            correlation_id: Correlation ID for logging, usually the session id
        """
        self.llm_config = llm_config or LLMConfig()
        self.correlation_id = correlation_id
        self.logger = get_logger(
            correlation_id=correlation_id,
            phase="dialogue",
            component="dialogue_agent",
        )

    def bind_session(self, correlation_id: str) -> None:
        """Trace later calls under a new session id."""
        self.correlation_id = correlation_id
        self.logger = get_logger(
            correlation_id=correlation_id,
            phase="dialogue",
            component="dialogue_agent",
        )

    async def next_turn(self, request: TurnRequest) -> TurnResponse:
        """
        Request the next conversation turn.

        Args:
            request: Profile, full history and current insights

        Returns:
            Validated TurnResponse

        Raises:
            ServiceResponseError: If the LLM output does not match the turn schema
            Exception: Transport failures after retries are exhausted
        """
        prompt = render_prompt(
            TURN_TEMPLATE,
            correlation_id=self.correlation_id,
            profile=request.profile,
            history=format_history(request.conversation_history),
            insights=request.insights,
        )

        self.logger.info(
            "Requesting next turn",
            history_length=len(request.conversation_history),
            insight_count=request.insights.total(),
        )

        raw = await call_llm_with_retry(
            prompt,
            correlation_id=self.correlation_id,
            system_prompt=self.llm_config.system_prompt,
            model=self.llm_config.model,
        )
        response = parse_json_response(
            raw, TurnResponse, service="dialogue turn", correlation_id=self.correlation_id
        )

        self.logger.info(
            "Turn received",
            prompt_length=len(response.next_prompt),
            new_insights=response.updated_insights.total(),
            is_concluding=response.is_concluding,
        )
        return response

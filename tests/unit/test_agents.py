"""
Unit tests for the LLM-backed dialogue and report agents.
"""

import json
from unittest.mock import AsyncMock

import pytest

from ivy_guide.agents.dialogue_agent import LLMDialogueAgent, format_history
from ivy_guide.agents.report_synthesizer import LLMReportSynthesizer
from ivy_guide.models.config import LLMConfig
from ivy_guide.models.conversation import Insights, Message, TurnRequest
from ivy_guide.models.errors import ServiceResponseError
from ivy_guide.models.profile import StudentProfile
from ivy_guide.models.report import ReportRequest

PROFILE = StudentProfile(
    name="Alex", grade="11th grade", curriculum="IB", stream="Science", country="USA"
)


def test_format_history_uses_guide_perspective():
    """Test that history lines read Student/You from the guide's side."""
    # Arrange
    messages = [
        Message(role="assistant", content="What do you enjoy?"),
        Message(role="user", content="Building robots"),
    ]

    # Act
    lines = format_history(messages)

    # Assert
    assert lines == ["You: What do you enjoy?", "Student: Building robots"]


class TestLLMDialogueAgent:
    """Test cases for LLMDialogueAgent."""

    @pytest.mark.asyncio
    async def test_next_turn_renders_prompt_and_parses(self, mocker):
        """Test that the turn prompt carries context and the reply is validated."""
        # Arrange
        mock_llm = mocker.patch(
            "ivy_guide.agents.dialogue_agent.call_llm_with_retry",
            new_callable=AsyncMock,
            return_value=json.dumps(
                {
                    "nextPrompt": "What do you like about robots?",
                    "updatedInsights": {"interests": ["robotics"]},
                    "isConcluding": False,
                }
            ),
        )
        agent = LLMDialogueAgent(llm_config=LLMConfig(model="test-model"))
        request = TurnRequest(
            profile=PROFILE,
            conversation_history=[Message(role="user", content="I build robots")],
            insights=Insights(strengths=["hands-on"], career_clusters=["Engineering"]),
        )

        # Act
        response = await agent.next_turn(request)

        # Assert
        assert response.next_prompt == "What do you like about robots?"
        assert response.updated_insights.interests == ["robotics"]
        prompt = mock_llm.call_args.args[0]
        assert "Alex" in prompt
        assert "Student: I build robots" in prompt
        assert "- hands-on" in prompt
        assert "- Engineering" in prompt
        assert "isConcluding" in prompt
        assert mock_llm.call_args.kwargs["model"] == "test-model"

    @pytest.mark.asyncio
    async def test_first_turn_prompt_mentions_welcome(self, mocker):
        """Test that an empty history asks for an opening welcome."""
        # Arrange
        mock_llm = mocker.patch(
            "ivy_guide.agents.dialogue_agent.call_llm_with_retry",
            new_callable=AsyncMock,
            return_value='{"nextPrompt": "Hi Alex!"}',
        )
        agent = LLMDialogueAgent()

        # Act
        await agent.next_turn(TurnRequest(profile=PROFILE))

        # Assert
        prompt = mock_llm.call_args.args[0]
        assert "has not started yet" in prompt
        assert "(none yet)" in prompt

    @pytest.mark.asyncio
    async def test_malformed_reply_raises(self, mocker):
        """Test that unparseable output surfaces as ServiceResponseError."""
        # Arrange
        mocker.patch(
            "ivy_guide.agents.dialogue_agent.call_llm_with_retry",
            new_callable=AsyncMock,
            return_value="I think you should be an engineer.",
        )
        agent = LLMDialogueAgent()

        # Act & Assert
        with pytest.raises(ServiceResponseError):
            await agent.next_turn(TurnRequest(profile=PROFILE))

    @pytest.mark.asyncio
    async def test_bind_session_switches_correlation_id(self, mocker):
        """Test that calls after bind_session are traced under the new session id."""
        # Arrange
        mock_llm = mocker.patch(
            "ivy_guide.agents.dialogue_agent.call_llm_with_retry",
            new_callable=AsyncMock,
            return_value='{"nextPrompt": "Hi again!"}',
        )
        agent = LLMDialogueAgent(correlation_id="session-1")

        # Act
        agent.bind_session("session-2")
        await agent.next_turn(TurnRequest(profile=PROFILE))

        # Assert
        assert agent.correlation_id == "session-2"
        assert mock_llm.call_args.kwargs["correlation_id"] == "session-2"


class TestLLMReportSynthesizer:
    """Test cases for LLMReportSynthesizer."""

    @pytest.mark.asyncio
    async def test_synthesize_report_parses_paths(self, mocker):
        """Test that the report reply is parsed into recommended paths."""
        # Arrange
        mock_llm = mocker.patch(
            "ivy_guide.agents.report_synthesizer.call_llm_with_retry",
            new_callable=AsyncMock,
            return_value=json.dumps(
                {
                    "interests": ["robotics", "math", "music"],
                    "strengths": ["curious", "persistent", "analytical"],
                    "recommendedPaths": [
                        {
                            "name": "Mechatronics",
                            "whyItFits": ["Loves building robots"],
                            "applicationReadiness": ["Document your robot builds"],
                        }
                    ],
                }
            ),
        )
        synthesizer = LLMReportSynthesizer()
        request = ReportRequest(profile=PROFILE, insights=Insights(interests=["robotics"]))

        # Act
        synthesis = await synthesizer.synthesize_report(request)

        # Assert
        assert synthesis.recommended_paths[0].name == "Mechatronics"
        assert synthesis.recommended_paths[0].why_it_fits == ["Loves building robots"]
        prompt = mock_llm.call_args.args[0]
        assert '"interests": ["robotics"]' in prompt
        assert "top 3" in prompt

    @pytest.mark.asyncio
    async def test_oversized_report_is_truncated(self, mocker):
        """Test that extra interests, strengths and paths are cut to size."""
        # Arrange
        mocker.patch(
            "ivy_guide.agents.report_synthesizer.call_llm_with_retry",
            new_callable=AsyncMock,
            return_value=json.dumps(
                {
                    "interests": ["a", "b", "c", "d"],
                    "strengths": ["1", "2", "3", "4", "5", "6"],
                    "recommendedPaths": [{"name": f"Path {i}"} for i in range(5)],
                }
            ),
        )
        synthesizer = LLMReportSynthesizer()

        # Act
        synthesis = await synthesizer.synthesize_report(
            ReportRequest(profile=PROFILE, insights=Insights())
        )

        # Assert
        assert synthesis.interests == ["a", "b", "c"]
        assert len(synthesis.strengths) == 5
        assert [p.name for p in synthesis.recommended_paths] == ["Path 0", "Path 1", "Path 2"]

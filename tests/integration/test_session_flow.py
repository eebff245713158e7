"""
Integration tests for a full career discovery session.

The real dialogue agent, report synthesizer, prompt templates, debouncer and
speech adapter are wired together; only the LLM call is replaced.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from ivy_guide.coordinator import ConversationOrchestrator
from ivy_guide.models.config import TimingConfig
from ivy_guide.utils.transcript import TRANSCRIPT_FILENAME, export_transcript
from ivy_guide.voice.debouncer import TranscriptFragment
from ivy_guide.voice.speech_io import CaptureEvent, SpeechIO

pytestmark = pytest.mark.integration


def turn_json(prompt, concluding=False, **insights):
    return json.dumps(
        {"nextPrompt": prompt, "updatedInsights": insights, "isConcluding": concluding}
    )


REPORT_JSON = json.dumps(
    {
        "interests": ["robotics", "building things", "coding", "music"],
        "strengths": ["hands-on problem solving", "persistence", "curiosity"],
        "recommendedPaths": [
            {
                "name": "Mechatronics Engineering",
                "whyItFits": ["Combines robotics with building physical systems"],
                "applicationReadiness": ["Take physics and maths HL", "Enter a robotics fair"],
            },
            {
                "name": "Embedded Software",
                "whyItFits": ["Likes coding things that move"],
                "applicationReadiness": ["Build an Arduino project"],
            },
        ],
    }
)


async def speak(speech: SpeechIO, orchestrator: ConversationOrchestrator, text: str):
    """Deliver ``text`` as captured speech and wait for it to be handled."""
    words = text.split()
    speech.handle_capture_event(
        CaptureEvent(
            kind="result",
            fragments=[TranscriptFragment(text=" ".join(words[:1]), is_final=False)],
        )
    )
    speech.handle_capture_event(
        CaptureEvent(kind="result", fragments=[TranscriptFragment(text=text, is_final=True)])
    )
    await asyncio.sleep(0.15)
    await orchestrator.settle()


@pytest.fixture
def llm(mocker):
    """Patch the LLM call used by both agents."""
    return {
        "dialogue": mocker.patch(
            "ivy_guide.agents.dialogue_agent.call_llm_with_retry", new_callable=AsyncMock
        ),
        "report": mocker.patch(
            "ivy_guide.agents.report_synthesizer.call_llm_with_retry",
            new_callable=AsyncMock,
            return_value=REPORT_JSON,
        ),
    }


@pytest.mark.asyncio
async def test_voice_session_from_onboarding_to_transcript(llm, fast_params, tmp_path):
    """Test voice onboarding, three turns, conclusion, report and transcript export."""
    # Arrange
    llm["dialogue"].side_effect = [
        turn_json("Hi Alex! What do you enjoy doing after school?"),
        turn_json(
            "Robots, nice! What part do you like most?",
            interests=["robotics"],
            careerClusters=["Engineering"],
        ),
        turn_json(
            "Thanks Alex, I have a good picture now. Let's look at your report!",
            concluding=True,
            interests=["robotics", "building things"],
            strengths=["hands-on problem solving"],
            constraints=["wants to study near home"],
        ),
    ]
    capture = MagicMock()
    speech = SpeechIO(capture=capture, timing=fast_params.timing)
    notices = []
    orchestrator = ConversationOrchestrator(
        speech=speech, session_params=fast_params, on_notice=notices.append
    )

    # Act
    orchestrator.begin()
    orchestrator.toggle_capture(True)
    orchestrator.choose_entry_method("voice")
    await orchestrator.settle()
    for answer in ["Alex", "11th grade", "IB", "Science", "India"]:
        await speak(speech, orchestrator, answer)

    assert orchestrator.phase == "dialogue"
    await speak(speech, orchestrator, "I love building robots")
    await speak(speech, orchestrator, "Putting the parts together, but I want to study near home")

    # Assert
    session = orchestrator.session
    assert orchestrator.phase == "report"
    assert notices == []
    assert session.profile.country == "India"
    assert llm["dialogue"].await_count == 3
    first_prompt = llm["dialogue"].await_args_list[0].args[0]
    assert "Alex" in first_prompt
    assert "has not started yet" in first_prompt
    last_prompt = llm["dialogue"].await_args_list[2].args[0]
    assert "Student: I love building robots" in last_prompt
    assert "- robotics" in last_prompt

    report = session.final_report
    assert report.interests == ("robotics", "building things", "coding")
    assert report.constraints == ("wants to study near home",)
    assert report.career_clusters == ("Engineering",)
    assert [p.name for p in report.recommended_paths] == [
        "Mechatronics Engineering",
        "Embedded Software",
    ]
    assert session.voice.is_capturing is False

    path = export_transcript(session.messages, tmp_path)
    assert path.name == TRANSCRIPT_FILENAME
    assert path.read_text(encoding="utf-8").splitlines() == [
        "Ivy: Hi Alex! What do you enjoy doing after school?",
        "Me: I love building robots",
        "Ivy: Robots, nice! What part do you like most?",
        "Me: Putting the parts together, but I want to study near home",
        "Ivy: Thanks Alex, I have a good picture now. Let's look at your report!",
    ]

    await orchestrator.shutdown()


@pytest.mark.asyncio
async def test_session_timeout_produces_report(llm, fast_params):
    """Test that the countdown alone ends the dialogue and produces a report."""
    # Arrange
    llm["dialogue"].return_value = turn_json("Hi Priya! What subjects do you enjoy?")
    params = fast_params.model_copy(
        update={
            "timing": TimingConfig(
                **{**fast_params.timing.model_dump(), "session_duration_s": 5}
            )
        }
    )
    orchestrator = ConversationOrchestrator(session_params=params)

    # Act
    orchestrator.begin()
    orchestrator.choose_entry_method("form")
    orchestrator.submit_profile_form(
        {"name": "Priya", "grade": "10", "curriculum": "CBSE", "stream": "", "country": "India"}
    )
    await orchestrator.settle()
    await asyncio.sleep(0.2)
    await orchestrator.settle()

    # Assert
    assert orchestrator.phase == "report"
    assert orchestrator.session.timer_remaining_s == 0
    assert orchestrator.session.final_report.profile.stream is None
    llm["report"].assert_awaited_once()

    await orchestrator.shutdown()


@pytest.mark.asyncio
async def test_malformed_turn_keeps_dialogue_going(llm, fast_params):
    """Test that an unparseable turn notifies and the next utterance still works."""
    # Arrange
    llm["dialogue"].side_effect = [
        turn_json("Hi Sam! What do you like?"),
        "I am not JSON at all",
        turn_json("Tell me more about art.", interests=["art"]),
    ]
    notices = []
    orchestrator = ConversationOrchestrator(session_params=fast_params, on_notice=notices.append)
    orchestrator.begin()
    orchestrator.choose_entry_method("form")
    orchestrator.submit_profile_form({"name": "Sam"})
    await orchestrator.settle()

    # Act
    await orchestrator.submit_text("I like art")
    await orchestrator.settle()
    await orchestrator.submit_text("Mostly painting")
    await orchestrator.settle()

    # Assert
    assert orchestrator.phase == "dialogue"
    assert any(n.level == "error" for n in notices)
    assert [m.role for m in orchestrator.session.messages] == [
        "assistant",
        "user",
        "user",
        "assistant",
    ]
    assert orchestrator.session.insights.interests == ["art"]

    await orchestrator.shutdown()

"""
Session Data Models

A Session is the single mutable state object of one conversation. It is owned
by the ConversationOrchestrator and discarded on restart.
"""

import uuid
from typing import Literal, Optional
from pydantic import BaseModel, Field

from ivy_guide.models.conversation import Insights, Message
from ivy_guide.models.profile import ProfileField, StudentProfile
from ivy_guide.models.report import FinalReport

Phase = Literal[
    "welcome",
    "entry-method-choice",
    "profile-collection",
    "dialogue",
    "evaluating",
    "report",
]

EntryMethod = Literal["form", "voice"]

NoticeLevel = Literal["info", "warning", "error"]


class Notice(BaseModel):
    """A user-visible notification (toast or blocking dialog)."""

    level: NoticeLevel = "info"
    title: str
    description: str = ""
    blocking: bool = False


class VoiceState(BaseModel):
    """Transient speech-capture state shown alongside the conversation."""

    capture_supported: bool = False
    synthesis_supported: bool = False
    is_capturing: bool = False
    is_speech_detected: bool = False
    is_speaking: bool = False
    permission_denied: bool = False
    live_transcript: str = ""


class Session(BaseModel):
    """Complete in-memory state of one onboarding conversation."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    phase: Phase = "welcome"
    entry_method: Optional[EntryMethod] = None
    onboarding_field: Optional[ProfileField] = None
    onboarding_prompt: str = ""
    profile: StudentProfile = Field(default_factory=StudentProfile)
    messages: list[Message] = Field(default_factory=list)
    insights: Insights = Field(default_factory=Insights)
    timer_remaining_s: int = 300
    timer_running: bool = False
    is_thinking: bool = False
    voice: VoiceState = Field(default_factory=VoiceState)
    notices: list[Notice] = Field(default_factory=list)
    final_report: Optional[FinalReport] = None

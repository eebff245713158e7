"""
Configuration Models

Pydantic models for session parameter validation.
"""

from typing import Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator

DEFAULT_SYSTEM_PROMPT = (
    "You are Ivy, a personal career discovery guide for students. "
    "Respond only with the JSON object requested by the user prompt."
)


class TimingConfig(BaseModel):
    """Timing knobs for debounce, countdown, evaluation and reveal pacing."""

    utterance_pause_s: float = Field(default=1.2, gt=0.0, le=10.0)
    session_duration_s: int = Field(default=300, gt=0)
    timer_tick_s: float = Field(default=1.0, gt=0.0)
    evaluation_display_delay_s: float = Field(default=10.0, ge=0.0)
    fallback_ms_per_char: float = Field(default=50.0, gt=0.0)


class VoiceConfig(BaseModel):
    """Speech capability configuration."""

    language: str = Field(default="en-US", min_length=2)
    transient_capture_errors: list[str] = Field(
        default_factory=lambda: ["network", "aborted", "no-speech"]
    )
    permission_capture_errors: list[str] = Field(
        default_factory=lambda: ["not-allowed", "service-not-allowed"]
    )

    @field_validator("permission_capture_errors")
    @classmethod
    def validate_disjoint_error_kinds(cls, v: list[str], info: ValidationInfo) -> list[str]:
        """An error kind cannot be both transient and fatal."""
        transient = set(info.data.get("transient_capture_errors", []))
        overlap = transient.intersection(v)
        if overlap:
            raise ValueError(
                f"Capture error kinds listed as both transient and permission errors: "
                f"{sorted(overlap)}"
            )
        return v


class LLMConfig(BaseModel):
    """LLM call configuration."""

    model: Optional[str] = Field(
        default=None, description="Model override; None uses the SDK default"
    )
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, min_length=1)


class SessionParams(BaseModel):
    """Session parameters configuration model."""

    timing: TimingConfig = Field(default_factory=TimingConfig)
    voice: VoiceConfig = Field(default_factory=VoiceConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a standard logging level name."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return v.upper()

"""Plain-text transcript export."""

from pathlib import Path
from typing import Sequence

import structlog

from ivy_guide.models.conversation import Message

logger = structlog.get_logger(__name__)

ROLE_LABELS = {"user": "Me", "assistant": "Ivy"}
TRANSCRIPT_FILENAME = "ivy-conversation-transcript.txt"


def render_transcript(messages: Sequence[Message]) -> str:
    """Render messages as one ``<Role>: <content>`` line each, joined by newlines."""
    return "\n".join(
        f"{ROLE_LABELS[message.role]}: {message.content}" for message in messages
    )


def export_transcript(messages: Sequence[Message], output_dir: Path) -> Path:
    """
    Write the transcript to ``output_dir/ivy-conversation-transcript.txt``.

    Args:
        messages: Full message sequence of the session
        output_dir: Directory to write into (created if missing)

    Returns:
        Path of the written file
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / TRANSCRIPT_FILENAME
    path.write_text(render_transcript(messages), encoding="utf-8")
    logger.info("transcript_exported", path=str(path), message_count=len(messages))
    return path

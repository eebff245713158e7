"""
LLM Helpers Module

Centralized LLM access and JSON response parsing for the dialogue and report
services. All LLM calls go through call_llm_with_retry; prompts live in
ivy_guide/prompts/ and are rendered by ivy_guide.utils.prompt_loader.

Example Usage:
    from ivy_guide.utils.llm_helpers import call_llm_with_retry, parse_json_response

    raw = await call_llm_with_retry(prompt, correlation_id=session_id)
    turn = parse_json_response(raw, TurnResponse, service="dialogue turn")
"""

import json
import logging
import structlog
from pydantic import BaseModel, ValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_log,
    after_log,
)
from typing import Optional, TypeVar

from ivy_guide.models.config import DEFAULT_SYSTEM_PROMPT
from ivy_guide.models.errors import ServiceResponseError

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _extract_json_from_markdown(response_text: str) -> str:
    """Extract JSON from LLM response, removing markdown code block markers if present.

    Args:
        response_text: Raw text response from LLM

    Returns:
        Clean JSON string with code block markers removed
    """
    json_text = response_text.strip()

    if json_text.startswith("```json"):
        json_text = json_text[7:]
    elif json_text.startswith("```"):
        json_text = json_text[3:]

    if json_text.endswith("```"):
        json_text = json_text[:-3]

    return json_text.strip()


def parse_json_response(
    response_text: str,
    model: type[ModelT],
    service: str,
    correlation_id: Optional[str] = None,
) -> ModelT:
    """
    Parse an LLM JSON response and validate it against a pydantic model.

    Args:
        response_text: Raw LLM response text
        model: Pydantic model the JSON must satisfy
        service: Service name used in error messages and logs
        correlation_id: Optional correlation ID for logging

    Returns:
        Validated model instance

    Raises:
        ServiceResponseError: If the text is not JSON or fails validation
    """
    json_text = _extract_json_from_markdown(response_text)
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        logger.warning(
            "LLM response is not valid JSON",
            service=service,
            response=response_text[:200],
            correlation_id=correlation_id,
        )
        raise ServiceResponseError(service, f"not valid JSON ({e.msg})") from e

    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(
            "LLM response failed schema validation",
            service=service,
            error_count=e.error_count(),
            correlation_id=correlation_id,
        )
        raise ServiceResponseError(service, f"{e.error_count()} schema error(s)") from e


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((ConnectionError, TimeoutError)),
    before=before_log(logger, logging.INFO),
    after=after_log(logger, logging.INFO),
    reraise=True,
)
async def call_llm_with_retry(
    prompt: str,
    correlation_id: Optional[str] = None,
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    model: Optional[str] = None,
) -> str:
    """
    Call LLM with retry logic using exponential backoff.

    Args:
        prompt: The formatted prompt to send to the LLM
        correlation_id: Optional correlation ID for logging
        system_prompt: System prompt for the one-off LLM session
        model: Optional model override

    Returns:
        LLM response text

    Raises:
        Exception: If all retry attempts fail

    Note:
        - Retries ConnectionError/TimeoutError 3 times, waiting 2s, 4s, 8s
        - Uses claude_agent_sdk.ClaudeSDKClient with tools disabled
    """
    from claude_agent_sdk import ClaudeSDKClient, ClaudeAgentOptions

    log = logger.bind(correlation_id=correlation_id) if correlation_id else logger

    log.debug("LLM call initiated", prompt_length=len(prompt))

    try:
        options = ClaudeAgentOptions(
            max_turns=1,
            allowed_tools=[],
            system_prompt=system_prompt,
            model=model,
            setting_sources=None,
        )

        response_text = ""

        async with ClaudeSDKClient(options=options) as client:
            await client.query(prompt)

            async for message in client.receive_response():
                if hasattr(message, "content") and message.content:
                    for block in message.content:
                        if hasattr(block, "text"):
                            response_text += block.text

        if not response_text:
            raise ValueError("LLM returned empty response")

        log.debug("LLM call succeeded", response_length=len(response_text))
        return response_text.strip()

    except Exception as e:
        log.error("LLM call failed", error=str(e), prompt_length=len(prompt))
        raise

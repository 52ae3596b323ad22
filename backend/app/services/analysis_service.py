"""
SubText Backend — Analysis Orchestrator
=========================================

What:  Sends an ordered list of received messages to the analysis model and
       returns its three-section answer (hidden meaning, behavior label,
       strategic reply) unchanged.
How:   Validate input → quote each message on its own line → one completion
       call (temperature 0.8, 250 output tokens) → pass the text through.
"""

import logging
from typing import Any, List

from app.exceptions import EmptyResultError, ValidationError
from app.prompts import ANALYSIS_SYSTEM_PROMPT, EXTRACTED_END, EXTRACTED_START, build_analysis_prompt
from app.services.llm_base import LLMService

logger = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE = 0.8
ANALYSIS_MAX_TOKENS = 250


def validate_messages(messages: Any) -> List[str]:
    if messages is None:
        raise ValidationError("Messages array is required", field="messages")
    if not isinstance(messages, list):
        raise ValidationError("Messages must be an array", field="messages")
    if not messages:
        raise ValidationError("Messages array cannot be empty", field="messages")
    if not all(isinstance(m, str) for m in messages):
        raise ValidationError("Every message must be a string", field="messages")
    return messages


def wrap_extracted_text(raw_text: Any) -> str:
    """
    Legacy pass-through used by POST /api/extract: the client already has
    the text and only needs it framed by the extracted-message markers.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        raise ValidationError("No text provided", field="rawText")
    return f"{EXTRACTED_START}\n{raw_text}\n{EXTRACTED_END}"


class AnalysisService:
    def __init__(self, llm: LLMService):
        self.llm = llm

    async def analyze(self, messages: Any) -> str:
        """
        Raises:
            ValidationError: messages missing, not a list, empty, or not all strings.
            UpstreamUnavailableError: model call failed or timed out.
            EmptyResultError: model returned no content.
        """
        validated = validate_messages(messages)
        logger.info("Analyzing %d messages", len(validated))

        content = await self.llm.complete(
            ANALYSIS_SYSTEM_PROMPT,
            build_analysis_prompt(validated),
            temperature=ANALYSIS_TEMPERATURE,
            max_output_tokens=ANALYSIS_MAX_TOKENS,
        )
        if not content:
            raise EmptyResultError(message="No analysis returned from the AI service")
        return content

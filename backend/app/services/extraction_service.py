"""
SubText Backend — Extraction Orchestrator
===========================================

What:  Turns a chat screenshot into the newline-separated list of messages
       the phone owner RECEIVED.
Why:   This text is what the client later sends to /api/analyze.
How:   One vision-model call, then a fixed sequence of checks on its output.

Pipeline (extract):
    1. read_image(prompt, bytes)           transport failure → UpstreamUnavailableError (500)
    2. empty response                      → EmptyResultError (500)
    3. "ERROR:" / not-a-chat phrases       → NotAConversationError (400)
    4. take text between the markers, or the whole response if absent
    5. empty / "no text messages" etc.     → EmptyOrInvalidError (400)

extract_for_user() wraps the pipeline with the per-user content cache and
the fire-and-forget usage increment. A cache hit never calls the model and
never consumes usage.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from app.exceptions import EmptyOrInvalidError, EmptyResultError, NotAConversationError
from app.prompts import EXTRACTION_PROMPT, RECEIVED_END, RECEIVED_START
from app.services.content_cache import ContentCache
from app.services.llm_base import LLMService

logger = logging.getLogger(__name__)

VISION_TEMPERATURE = 0.1
VISION_MAX_TOKENS = 1500

NOT_A_CONVERSATION_PHRASES = ("does not contain text messages", "not a conversation")
INVALID_RESULT_PHRASES = ("no text messages", "cannot identify", "unable to")


@dataclass
class OcrResult:
    text: str
    cached: bool = False


def looks_like_non_conversation(response: str) -> bool:
    lowered = response.lower()
    if "ERROR:" in response:
        return True
    return any(phrase in lowered for phrase in NOT_A_CONVERSATION_PHRASES)


def parse_received_messages(response: str) -> str:
    """
    Return the trimmed text strictly between the received-message markers.

    Falls back to the whole trimmed response when either marker is missing
    or the end marker does not come after the start marker.
    """
    start = response.find(RECEIVED_START)
    end = response.find(RECEIVED_END)
    if start != -1 and end != -1:
        body_start = start + len(RECEIVED_START)
        if end >= body_start:
            return response[body_start:end].strip()
    return response.strip()


def is_invalid_result(text: str) -> bool:
    if not text:
        return True
    lowered = text.lower()
    if lowered.startswith("error"):
        return True
    return any(phrase in lowered for phrase in INVALID_RESULT_PHRASES)


class ExtractionService:
    """
    Args:
        llm: Vision-capable model client.
        cache: Per-user content cache (shared, process-local).
        usage: Object exposing increment_in_background(identity). Optional so
               the pure extraction pipeline can be used on its own.
    """

    def __init__(self, llm: LLMService, cache: ContentCache, usage=None):
        self.llm = llm
        self.cache = cache
        self.usage = usage

    async def extract(self, image_bytes: bytes, mime_type: str) -> str:
        response = await self.llm.read_image(
            EXTRACTION_PROMPT,
            image_bytes,
            mime_type,
            temperature=VISION_TEMPERATURE,
            max_output_tokens=VISION_MAX_TOKENS,
        )

        if not response or not response.strip():
            logger.warning("Vision model returned an empty response")
            raise EmptyResultError()

        if looks_like_non_conversation(response):
            logger.info("Vision model reported the image is not a conversation")
            raise NotAConversationError(context={"response_preview": response[:120]})

        text = parse_received_messages(response)

        if is_invalid_result(text):
            logger.info("Extraction produced no usable received messages")
            raise EmptyOrInvalidError(context={"text_preview": text[:120]})

        return text

    async def extract_for_user(
        self, identity: str, image_bytes: bytes, mime_type: str
    ) -> OcrResult:
        """
        Cached extraction for an authenticated, already-gated user.

        On a miss the result is cached and one unit of usage is recorded in
        the background; the response never waits for, or fails on, that write.
        """
        key = self.cache.make_key(identity, image_bytes)
        cached: Optional[str] = self.cache.get(key)
        if cached is not None:
            logger.info("Serving cached extraction for user %s", identity)
            return OcrResult(text=cached, cached=True)

        text = await self.extract(image_bytes, mime_type)
        self.cache.put(key, text)

        if self.usage is not None:
            self.usage.increment_in_background(identity)

        logger.info(
            "Extracted %d received lines for user %s",
            len(text.splitlines()),
            identity,
        )
        return OcrResult(text=text, cached=False)

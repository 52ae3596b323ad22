"""
SubText Backend — Google Gemini Service Implementation
========================================================

What:  Concrete LLMService backed by the Google Gemini API.
Why:   One provider serves both the vision step (read received messages off
       a screenshot) and the analysis step (three-section reply).
How:   Images are sent inline as a {"mime_type", "data"} blob part; nothing is
       uploaded or stored. Every call is bounded by `timeout_seconds` and is
       attempted exactly once.

Error mapping:
    asyncio timeout / any SDK or transport exception → UpstreamUnavailableError
    response with no text part (blocked, empty)      → ""  (caller decides)
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import google.generativeai as genai

from app.exceptions import UpstreamUnavailableError
from app.services.llm_base import LLMService

logger = logging.getLogger(__name__)


class GeminiService(LLMService):
    """
    Gemini implementation of the LLM interface.

    Args:
        api_key: Gemini API key. Empty keys skip genai.configure() so the app
                 can still boot (calls will then fail as UpstreamUnavailable).
        vision_model: Model name used for read_image().
        analysis_model: Model name used for complete().
        timeout_seconds: Ceiling for one request, enforced locally and passed
                         to the SDK as a request option.
    """

    def __init__(
        self,
        api_key: str,
        vision_model: str = "gemini-1.5-flash",
        analysis_model: str = "gemini-1.5-flash",
        timeout_seconds: float = 60.0,
    ):
        if api_key and api_key != "your_gemini_api_key_here":
            genai.configure(api_key=api_key)

        self.vision_model_name = vision_model
        self.analysis_model_name = analysis_model
        self.timeout_seconds = timeout_seconds
        self.vision_model = genai.GenerativeModel(vision_model)

        logger.info(
            "GeminiService initialized with vision_model=%s, analysis_model=%s, timeout=%ss",
            vision_model,
            analysis_model,
            timeout_seconds,
        )

    async def read_image(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str,
        temperature: float = 0.1,
        max_output_tokens: int = 1500,
    ) -> str:
        contents: List[Any] = [prompt, {"mime_type": mime_type, "data": image_bytes}]
        return await self._generate(
            self.vision_model,
            contents,
            {"temperature": temperature, "max_output_tokens": max_output_tokens},
            operation="vision",
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        max_output_tokens: int = 250,
    ) -> str:
        # system_instruction is bound at construction time in the SDK
        model = genai.GenerativeModel(
            self.analysis_model_name,
            system_instruction=system_prompt,
        )
        return await self._generate(
            model,
            [user_prompt],
            {"temperature": temperature, "max_output_tokens": max_output_tokens},
            operation="analysis",
        )

    async def _generate(
        self,
        model: Any,
        contents: List[Any],
        generation_config: Dict[str, Any],
        operation: str,
    ) -> str:
        start_time = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                model.generate_content_async(
                    contents,
                    generation_config=generation_config,
                    request_options={"timeout": self.timeout_seconds},
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Gemini %s call timed out after %ss", operation, self.timeout_seconds
            )
            raise UpstreamUnavailableError(
                message="The AI service took too long to respond",
                context={"operation": operation, "timeout": self.timeout_seconds},
            )
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "Gemini %s call failed after %.0fms: %s",
                operation,
                duration_ms,
                str(e),
            )
            raise UpstreamUnavailableError(
                message="Failed to process request with the AI service",
                context={"operation": operation, "error_type": type(e).__name__},
            ) from e

        text = self._response_text(response)
        logger.info(
            "Gemini %s call completed in %.0fms, returned %d chars",
            operation,
            (time.perf_counter() - start_time) * 1000,
            len(text),
        )
        return text

    @staticmethod
    def _response_text(response: Any) -> str:
        # .text raises ValueError when the candidate has no text part
        # (safety block, empty candidate list)
        try:
            text: Optional[str] = response.text
        except ValueError:
            return ""
        return text.strip() if text else ""

    async def health_check(self) -> bool:
        """Lists models (no token cost) to verify key and connectivity."""
        try:
            models = await asyncio.wait_for(
                asyncio.to_thread(lambda: list(genai.list_models())),
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False
        target = f"models/{self.vision_model_name}"
        if target not in [m.name for m in models]:
            logger.warning("Configured model %s not found in available models", target)
        return True

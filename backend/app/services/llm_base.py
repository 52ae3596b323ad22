"""
SubText Backend — LLM Service Abstract Base Class
===================================================

What:  Abstract interface for the two model operations the API needs:
       reading a screenshot, and completing a text prompt.
Why:   The extraction and analysis orchestrators depend on this interface
       only, so the provider can be swapped and tests can pass a fake.
How:   Python ABC with abstract methods. GeminiService implements it.

Contract:
    - Both operations return the model's raw text ("" when it produced none).
    - Transport failures and timeouts are raised as UpstreamUnavailableError.
    - Implementations never retry; the orchestrators decide what an empty or
      odd response means.
"""

from abc import ABC, abstractmethod


class LLMService(ABC):
    """Opaque, fallible (image | text) → text function."""

    @abstractmethod
    async def read_image(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str,
        temperature: float = 0.1,
        max_output_tokens: int = 1500,
    ) -> str:
        """
        Send an instruction plus one inline image to a vision model.

        Args:
            prompt: Instruction text placed before the image.
            image_bytes: Raw image content (never written to disk).
            mime_type: Content type reported by the upload, e.g. "image/png".

        Returns:
            The model's text output, or "" if it returned nothing.

        Raises:
            UpstreamUnavailableError: transport failure or timeout.
        """
        ...

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
        max_output_tokens: int = 250,
    ) -> str:
        """Text-only completion with a system instruction. Same error contract."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability probe used by GET /health."""
        ...

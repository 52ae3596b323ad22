"""
SubText Backend — Gemini Service Unit Tests (Mocked)
======================================================

What:  Tests for GeminiService with the Google Generative AI SDK patched out.
Why:   Tests should not make real API calls (costs money, requires network).
How:   Patches the genai module so GenerativeModel returns a MagicMock whose
       generate_content_async is an AsyncMock.

What we test:
    ✅ Vision call sends the prompt plus an inline image blob
    ✅ Analysis call binds the system prompt and returns stripped text
    ✅ Blocked / empty candidates come back as ""
    ✅ Timeouts and SDK exceptions become UpstreamUnavailableError (no retry)
    ✅ health_check reports model-list reachability
    ❌ Real API calls
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

import pytest

from app.exceptions import UpstreamUnavailableError
from app.services.gemini_service import GeminiService


def _response(text):
    response = MagicMock()
    response.text = text
    return response


class TestGeminiServiceMocked:
    """Tests for GeminiService with mocked Gemini API."""

    @pytest.mark.asyncio
    async def test_read_image_sends_inline_blob(self):
        """The image is passed inline with its MIME type, never uploaded."""
        with patch('app.services.gemini_service.genai') as mock_genai:
            mock_model = MagicMock()
            mock_model.generate_content_async = AsyncMock(return_value=_response("  hello  "))
            mock_genai.GenerativeModel.return_value = mock_model

            service = GeminiService(api_key="test-key")
            text = await service.read_image("PROMPT", b"\x89PNG", "image/png", temperature=0.1, max_output_tokens=1500)

            assert text == "hello"
            mock_genai.configure.assert_called_once_with(api_key="test-key")
            args, kwargs = mock_model.generate_content_async.call_args
            assert args[0] == ["PROMPT", {"mime_type": "image/png", "data": b"\x89PNG"}]
            assert kwargs["generation_config"] == {"temperature": 0.1, "max_output_tokens": 1500}
            mock_genai.upload_file.assert_not_called()

    @pytest.mark.asyncio
    async def test_complete_binds_system_instruction(self):
        with patch('app.services.gemini_service.genai') as mock_genai:
            mock_model = MagicMock()
            mock_model.generate_content_async = AsyncMock(return_value=_response("analysis"))
            mock_genai.GenerativeModel.return_value = mock_model

            service = GeminiService(api_key="test-key", analysis_model="gemini-test")
            text = await service.complete("SYSTEM", "USER")

            assert text == "analysis"
            mock_genai.GenerativeModel.assert_called_with("gemini-test", system_instruction="SYSTEM")
            args, kwargs = mock_model.generate_content_async.call_args
            assert args[0] == ["USER"]
            assert kwargs["generation_config"] == {"temperature": 0.8, "max_output_tokens": 250}

    def test_placeholder_key_skips_configure(self):
        with patch('app.services.gemini_service.genai') as mock_genai:
            GeminiService(api_key="")
            mock_genai.configure.assert_not_called()

    @pytest.mark.asyncio
    async def test_blocked_response_returns_empty_string(self):
        """.text raises ValueError when there is no text part."""
        with patch('app.services.gemini_service.genai') as mock_genai:
            response = MagicMock()
            type(response).text = PropertyMock(side_effect=ValueError("blocked"))
            mock_model = MagicMock()
            mock_model.generate_content_async = AsyncMock(return_value=response)
            mock_genai.GenerativeModel.return_value = mock_model

            service = GeminiService(api_key="test-key")
            assert await service.read_image("P", b"x", "image/jpeg") == ""

    @pytest.mark.asyncio
    async def test_sdk_error_becomes_upstream_unavailable(self):
        """A failing call is attempted once and reported as a 500-class error."""
        with patch('app.services.gemini_service.genai') as mock_genai:
            mock_model = MagicMock()
            mock_model.generate_content_async = AsyncMock(side_effect=RuntimeError("quota"))
            mock_genai.GenerativeModel.return_value = mock_model

            service = GeminiService(api_key="test-key")
            with pytest.raises(UpstreamUnavailableError) as exc_info:
                await service.read_image("P", b"x", "image/jpeg")

            assert exc_info.value.status_code == 500
            assert mock_model.generate_content_async.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_becomes_upstream_unavailable(self):
        with patch('app.services.gemini_service.genai') as mock_genai:
            mock_model = MagicMock()
            mock_model.generate_content_async = AsyncMock(side_effect=asyncio.TimeoutError())
            mock_genai.GenerativeModel.return_value = mock_model

            service = GeminiService(api_key="test-key", timeout_seconds=1)
            with pytest.raises(UpstreamUnavailableError, match="too long"):
                await service.complete("S", "U")

    # ── Health check ──────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_health_check_true_when_models_listed(self):
        with patch('app.services.gemini_service.genai') as mock_genai:
            model = MagicMock()
            model.name = "models/gemini-1.5-flash"
            mock_genai.list_models.return_value = [model]

            service = GeminiService(api_key="test-key")
            assert await service.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_false_on_error(self):
        with patch('app.services.gemini_service.genai') as mock_genai:
            mock_genai.list_models.side_effect = RuntimeError("network down")

            service = GeminiService(api_key="test-key")
            assert await service.health_check() is False

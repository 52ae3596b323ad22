"""
SubText Backend — Analysis Routes
===================================

POST /api/analyze   {messages: string[]} → three-section analysis text
POST /api/extract   {rawText} → text framed by the extracted-message markers
                    (kept for clients that run their own OCR)

Neither endpoint requires authentication.
"""

import logging

from fastapi import APIRouter, Depends

from app.container import ServiceContainer
from app.dependencies import get_container
from app.schemas.common import ErrorResponse
from app.schemas.ocr import (
    AnalyzeRequest,
    AnalyzeResponse,
    Choice,
    ChoiceMessage,
    CompletionResponse,
    ExtractRequest,
)
from app.services.analysis_service import wrap_extracted_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Analysis"])


@router.post(
    "/extract",
    response_model=CompletionResponse,
    responses={400: {"model": ErrorResponse}},
)
async def extract(body: ExtractRequest) -> CompletionResponse:
    content = wrap_extracted_text(body.raw_text)
    return CompletionResponse(choices=[Choice(message=ChoiceMessage(content=content))])


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Decode the hidden meaning of received messages",
)
async def analyze(
    body: AnalyzeRequest,
    container: ServiceContainer = Depends(get_container),
) -> AnalyzeResponse:
    analysis = await container.analysis.analyze(body.messages)
    return AnalyzeResponse(
        analysis=analysis,
        choices=[Choice(message=ChoiceMessage(content=analysis))],
    )

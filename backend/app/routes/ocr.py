"""
SubText Backend — OCR Route
=============================

What:  POST /api/ocr turns a chat screenshot into received-message text.

Request Flow (strictly in this order; the first failing step answers):
    1. Bearer token verified                          → 401
    2. Per-user rate limit (20 / hour)                → 429 + Retry-After
    3. Active, unexpired subscription                 → 403 "Subscription required"
    4. Monthly usage below the plan limit             → 403 "Usage limit reached"
    5. Upload present, image/*, ≤ MAX_FILE_SIZE       → 400
    6. Content cache, else vision extraction          → 400 / 500 on bad output
    7. Usage +1 in the background (cache misses only)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from app.container import ServiceContainer
from app.dependencies import get_container, get_current_user
from app.exceptions import AuthorizationError, RateLimitExceededError
from app.schemas.common import ErrorResponse
from app.schemas.ocr import OcrResponse, ParsedResult
from app.services.auth_service import AuthenticatedUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["OCR"])


async def enforce_access(container: ServiceContainer, user: AuthenticatedUser) -> None:
    """Rate limit, subscription and usage checks, in that order."""
    if not container.rate_limiter.allow(user.id):
        raise RateLimitExceededError(
            retry_after=container.rate_limiter.retry_after(user.id),
            message="Rate limit exceeded",
        )

    if not await container.subscriptions.is_subscribed(user.id):
        raise AuthorizationError(
            "Subscription required",
            details={"message": "Please subscribe to use this feature"},
        )

    if await container.usage.limit_reached(user.id):
        snapshot = await container.usage.current_usage(user.id)
        subscription = await container.subscriptions.get_active_subscription(user.id)
        raise AuthorizationError(
            "Usage limit reached",
            details={
                "usage": {
                    "current": snapshot.count,
                    "limit": subscription.monthly_limit if subscription else 0,
                }
            },
        )


@router.post(
    "/ocr",
    response_model=OcrResponse,
    response_model_exclude_none=True,
    responses={
        400: {"description": "Missing/invalid image or no messages found", "model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"description": "No subscription or usage limit reached", "model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"description": "Vision model failed", "model": ErrorResponse},
    },
    summary="Extract received messages from a chat screenshot",
)
async def ocr(
    image: Optional[UploadFile] = File(default=None, description="Chat screenshot (image/*, max 10MB)"),
    user: AuthenticatedUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> OcrResponse:
    await enforce_access(container, user)

    try:
        content = await image.read() if image is not None else None
        mime_type = container.files.validate_upload(
            content,
            image.content_type if image is not None else None,
            declared_size=image.size if image is not None else None,
        )
        logger.info(
            "OCR request from user %s: %s, %d bytes", user.id, mime_type, len(content)
        )
        result = await container.extraction.extract_for_user(user.id, content, mime_type)
    finally:
        if image is not None:
            await image.close()

    return OcrResponse(
        parsed_results=[ParsedResult(parsed_text=result.text)],
        cached=True if result.cached else None,
    )

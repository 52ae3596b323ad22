"""
SubText Backend — PayPal Webhook Route
========================================

POST /api/webhooks/paypal

    unparseable body                       → 400
    PAYPAL_WEBHOOK_ID set and signature
    rejected or unverifiable               → 401
    otherwise                              → 200 {"received": true}

Event handling failures are logged by the lifecycle manager and never change
the response, so PayPal does not keep redelivering an event we cannot apply.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request

from app.container import ServiceContainer
from app.dependencies import get_container
from app.exceptions import AuthenticationError, PaymentProviderError, ValidationError
from app.schemas.common import ErrorResponse
from app.schemas.subscription import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@router.post(
    "/paypal",
    response_model=WebhookAck,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def paypal_webhook(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> WebhookAck:
    raw = await request.body()
    try:
        event = json.loads(raw)
    except ValueError as e:
        raise ValidationError("Webhook body is not valid JSON", field="body") from e
    if not isinstance(event, dict):
        raise ValidationError("Webhook body must be a JSON object", field="body")

    webhook_id = container.settings.paypal_webhook_id
    if webhook_id:
        try:
            valid = await container.paypal.verify_webhook_signature(
                webhook_id, request.headers, event
            )
        except PaymentProviderError as e:
            logger.warning("Webhook signature could not be verified: %s", e.message)
            valid = False
        if not valid:
            logger.warning("Invalid PayPal webhook signature for event %s", event.get("id"))
            raise AuthenticationError("Invalid signature")

    await container.lifecycle.handle_event(event)
    return WebhookAck(received=True)

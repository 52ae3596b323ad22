"""
SubText Backend — Subscription Routes
=======================================

GET  /api/subscription/status     plan + usage for the current user (never 500s)
GET  /api/subscriptions/plans     static plan catalogue
POST /api/subscriptions/create    confirm a PayPal checkout
POST /api/subscriptions/cancel    cancel at PayPal, then locally
"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends

from app.container import ServiceContainer
from app.dependencies import get_container, get_current_user
from app.models.subscription import UNLIMITED
from app.schemas.common import ErrorResponse, MessageResponse
from app.schemas.subscription import (
    CancelSubscriptionRequest,
    CreateSubscriptionRequest,
    CreateSubscriptionResponse,
    PlanOut,
    PlansResponse,
    SubscriptionOut,
    SubscriptionStatusResponse,
    SubscriptionSummary,
    UsageSummary,
)
from app.services.auth_service import AuthenticatedUser
from app.services.subscription_service import as_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Subscriptions"])

UNLIMITED_LABEL = "unlimited"


def _degraded_status() -> SubscriptionStatusResponse:
    return SubscriptionStatusResponse(
        has_subscription=False,
        subscription=None,
        usage=UsageSummary(current=0, limit=0, remaining=0),
    )


@router.get("/subscription/status", response_model=SubscriptionStatusResponse)
async def subscription_status(
    user: AuthenticatedUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> SubscriptionStatusResponse:
    """
    Advisory view of the user's plan and this month's usage.

    Store failures degrade to "no subscription, zero usage" instead of an
    error: the client uses this only to render UI, and the OCR gate performs
    its own checks.
    """
    try:
        subscription = await container.subscriptions.get_active_subscription(user.id)
        usage = await container.usage.current_usage(user.id)
    except Exception:
        logger.exception("Subscription status degraded for user %s", user.id)
        return _degraded_status()

    if subscription is None:
        return SubscriptionStatusResponse(
            has_subscription=False,
            subscription=None,
            usage=UsageSummary(current=usage.count, limit=0, remaining=0),
        )

    expires_at = as_utc(subscription.expires_at)
    has_subscription = (
        expires_at is not None and expires_at > container.subscriptions.now()
    )

    if subscription.monthly_limit == UNLIMITED:
        limit: Union[int, str] = UNLIMITED_LABEL
        remaining: Union[int, str] = UNLIMITED_LABEL
    else:
        limit = subscription.monthly_limit
        remaining = max(0, subscription.monthly_limit - usage.count)

    return SubscriptionStatusResponse(
        has_subscription=has_subscription,
        subscription=SubscriptionSummary(
            tier=subscription.tier,
            expires_at=expires_at,
            monthly_limit=subscription.monthly_limit,
        ) if has_subscription else None,
        usage=UsageSummary(current=usage.count, limit=limit, remaining=remaining),
    )


@router.get("/subscriptions/plans", response_model=PlansResponse)
async def list_plans(
    container: ServiceContainer = Depends(get_container),
) -> PlansResponse:
    plans = [
        PlanOut(
            id=plan.id,
            name=plan.name,
            price=plan.price,
            limit=plan.limit,
            description=plan.description,
            features=plan.features,
        )
        for plan in container.subscriptions.list_plans()
    ]
    return PlansResponse(success=True, plans=plans)


@router.post(
    "/subscriptions/create",
    response_model=CreateSubscriptionResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_subscription(
    body: CreateSubscriptionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> CreateSubscriptionResponse:
    logger.info("Create subscription request: tier=%s user=%s", body.tier, user.id)
    subscription = await container.subscriptions.create_from_checkout(
        user.id, body.subscription_id, body.tier
    )
    return CreateSubscriptionResponse(
        success=True,
        subscription=SubscriptionOut(
            tier=subscription.tier,
            status=subscription.status,
            monthly_limit=subscription.monthly_limit,
            expires_at=as_utc(subscription.expires_at),
        ),
    )


@router.post(
    "/subscriptions/cancel",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def cancel_subscription(
    body: Optional[CancelSubscriptionRequest] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> MessageResponse:
    reason = body.reason if body is not None else None
    await container.subscriptions.cancel_checkout(user.id, reason)
    return MessageResponse(success=True, message="Subscription cancelled successfully")

"""
SubText Backend — Service Container
=====================================

What:  One object that owns every long-lived service and the process-local
       mutable state (rate limiter windows, content cache, pending usage
       tasks).
Why:   Route handlers receive it through FastAPI dependency injection
       (app.state.container) instead of importing module-level singletons,
       so each app instance, and each test, gets isolated state.
How:   build_container() wires real collaborators from settings; tests pass
       fakes for the LLM, auth provider and PayPal client.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings, settings as default_settings
from app.services.analysis_service import AnalysisService
from app.services.auth_service import AuthService
from app.services.content_cache import ContentCache
from app.services.extraction_service import ExtractionService
from app.services.file_service import FileService
from app.services.lifecycle_service import SubscriptionLifecycleManager
from app.services.llm_base import LLMService
from app.services.paypal_client import PayPalClient
from app.services.rate_limiter import RateLimiter
from app.services.subscription_service import SubscriptionService
from app.services.supabase_auth import SupabaseAuthClient
from app.services.usage_service import UsageService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    llm: LLMService
    auth_provider: SupabaseAuthClient
    paypal: PayPalClient
    rate_limiter: RateLimiter
    cache: ContentCache
    files: FileService
    subscriptions: SubscriptionService
    usage: UsageService
    extraction: ExtractionService
    analysis: AnalysisService
    auth: AuthService
    lifecycle: SubscriptionLifecycleManager

    async def aclose(self) -> None:
        """Drain detached usage writes and close outbound HTTP clients."""
        await self.usage.wait_for_pending()
        await self.paypal.aclose()
        await self.auth_provider.aclose()


def build_container(
    config: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    llm: Optional[LLMService] = None,
    auth_provider: Optional[SupabaseAuthClient] = None,
    paypal: Optional[PayPalClient] = None,
    rate_limiter: Optional[RateLimiter] = None,
    cache: Optional[ContentCache] = None,
) -> ServiceContainer:
    """Assemble the service graph. Any collaborator can be overridden."""
    config = config or default_settings

    if session_factory is None:
        from app.database import async_session_factory
        session_factory = async_session_factory

    if llm is None:
        from app.services.gemini_service import GeminiService
        llm = GeminiService(
            api_key=config.gemini_api_key,
            vision_model=config.gemini_vision_model,
            analysis_model=config.gemini_analysis_model,
            timeout_seconds=config.upstream_timeout_seconds,
        )

    if auth_provider is None:
        auth_provider = SupabaseAuthClient(
            url=config.supabase_url or "http://localhost:54321",
            anon_key=config.supabase_anon_key,
            service_key=config.supabase_service_key,
            timeout_seconds=config.upstream_timeout_seconds,
        )

    if paypal is None:
        paypal = PayPalClient(
            client_id=config.paypal_client_id,
            client_secret=config.paypal_client_secret,
            base_url=config.paypal_base_url,
            timeout_seconds=config.upstream_timeout_seconds,
        )

    rate_limiter = rate_limiter or RateLimiter(
        max_requests=config.rate_limit_requests,
        window_seconds=config.rate_limit_window,
    )
    cache = cache or ContentCache(
        ttl_seconds=config.cache_ttl_seconds,
        max_entries=config.cache_max_entries,
    )

    subscriptions = SubscriptionService(
        session_factory,
        paypal=paypal,
        plan_ids={
            config.paypal_basic_plan_id: "basic",
            config.paypal_pro_plan_id: "pro",
            config.paypal_premium_plan_id: "premium",
        },
    )
    usage = UsageService(session_factory, subscriptions)

    return ServiceContainer(
        settings=config,
        session_factory=session_factory,
        llm=llm,
        auth_provider=auth_provider,
        paypal=paypal,
        rate_limiter=rate_limiter,
        cache=cache,
        files=FileService(max_file_size=config.max_file_size),
        subscriptions=subscriptions,
        usage=usage,
        extraction=ExtractionService(llm, cache, usage),
        analysis=AnalysisService(llm),
        auth=AuthService(session_factory, auth_provider),
        lifecycle=SubscriptionLifecycleManager(subscriptions, paypal),
    )

"""
SubText Backend — Services Layer
==================================

Service Inventory:
    - RateLimiter / ContentCache: process-local gating and caching state
    - LLMService (abstract) / GeminiService: vision + text model access
    - ExtractionService / AnalysisService: model orchestration
    - UsageService / SubscriptionService: monthly quota and plan state
    - SubscriptionLifecycleManager: PayPal webhook reconciliation
    - PayPalClient / SupabaseAuthClient: outbound REST clients
    - AuthService: signup, login and token verification
    - FileService: upload validation
"""

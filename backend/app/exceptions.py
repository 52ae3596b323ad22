"""
SubText Backend — Custom Exception Hierarchy
==============================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and dependencies; caught by global handlers.

Exception Hierarchy:
    SubTextError (base)                  → 500
    ├── ValidationError                  → 400 Bad Request (client can fix)
    ├── AuthenticationError              → 401 Unauthorized
    ├── AuthorizationError               → 403 Forbidden (subscription / quota)
    ├── NotFoundError                    → 404 Not Found
    ├── ConflictError                    → 409 Conflict
    ├── RateLimitExceededError           → 429 Too Many Requests
    ├── UpstreamError                    → status_code attribute
    │   ├── UpstreamUnavailableError     → 500 (transport failure / timeout)
    │   ├── EmptyResultError             → 500 (model returned nothing)
    │   ├── NotAConversationError        → 400 (image is not a chat)
    │   ├── EmptyOrInvalidError          → 400 (nothing usable extracted)
    │   └── PaymentProviderError         → 500 (PayPal call failed)
    └── PersistenceError                 → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class SubTextError(Exception):
    """
    Base exception for all SubText application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for 5xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SubTextError):
    """
    Raised when client input fails validation.

    HTTP:    400 Bad Request
    When:    Missing upload, non-image content type, empty message list,
             malformed email, short password, unknown subscription tier.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(SubTextError):
    """Missing, malformed or rejected credentials. HTTP 401."""

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthorizationError(SubTextError):
    """
    Authenticated, but not allowed to perform this action.

    HTTP:    403 Forbidden
    When:    No active subscription, or the monthly usage limit is reached.
             `details` is returned to the client (e.g. current usage numbers).
    """

    def __init__(
        self,
        message: str = "Forbidden",
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.details = details or {}


class NotFoundError(SubTextError):
    """Raised when a requested resource does not exist. HTTP 404."""

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(SubTextError):
    """The resource already exists (e.g. signup with a registered email). HTTP 409."""

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(SubTextError):
    """
    Raised when a user exceeds the per-identity request rate limit.

    HTTP:    429 Too Many Requests
    Response includes a Retry-After header in seconds.
    """

    def __init__(
        self,
        retry_after: int = 60,
        message: str = "Rate limit exceeded",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


# ══════════════════════════════════════════════════════════════════════════
# Upstream failures
# ══════════════════════════════════════════════════════════════════════════

class UpstreamError(SubTextError):
    """
    Base for failures that originate in, or are detected in the output of,
    an external collaborator (vision model, analysis model, payment provider).

    Each subclass pins its own HTTP status so a single handler can map the
    whole family. 4xx subclasses mean the input was unusable; 5xx mean the
    provider misbehaved.
    """

    status_code: int = 500
    error_code: str = "upstream_error"

    def __init__(
        self,
        message: str = "An upstream service failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpstreamUnavailableError(UpstreamError):
    status_code = 500
    error_code = "upstream_unavailable"

    def __init__(
        self,
        message: str = "Failed to process image",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EmptyResultError(UpstreamError):
    status_code = 500
    error_code = "empty_result"

    def __init__(
        self,
        message: str = "No text extracted from image",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotAConversationError(UpstreamError):
    status_code = 400
    error_code = "not_a_conversation"

    def __init__(
        self,
        message: str = "This image does not appear to be a text conversation. "
                       "Please upload a screenshot of a chat.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EmptyOrInvalidError(UpstreamError):
    status_code = 400
    error_code = "no_messages_found"

    def __init__(
        self,
        message: str = "No received messages could be found in this screenshot.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PaymentProviderError(UpstreamError):
    """PayPal returned a non-2xx status or could not be reached."""

    status_code = 500
    error_code = "payment_provider_error"

    def __init__(
        self,
        message: str = "Payment provider request failed",
        status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status is not None:
            ctx["provider_status"] = status
        super().__init__(message=message, context=ctx)
        self.status = status


class PersistenceError(SubTextError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error
    The message returned to the client is always generic; the SQL error is
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)

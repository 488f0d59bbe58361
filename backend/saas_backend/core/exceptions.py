"""
Custom exception hierarchy for structured error handling.

WHY: Custom exceptions provide:
1. Consistent error handling across the API
2. HTTP status code mapping for FastAPI
3. Structured error responses with contextual data
4. No sensitive data leaks in error messages (OWASP A04)
5. A closed set of billing error kinds the webhook pipeline can branch on

IMPORTANT: NEVER use base Exception class. Always use custom exceptions.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    WHY: Centralizing exception handling in a base class ensures consistent
    error responses, HTTP status code mapping, and prevents sensitive data
    leaks in error messages.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        WHY: Context parameters allow including debugging information
        (user_id, org_id, subscription_id, etc.) without leaking sensitive
        data like secrets or signatures.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        # WHY: Filter out sensitive fields to prevent data leaks
        sensitive_fields = {"password", "token", "secret", "key", "api_key", "signature"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# External Collaborator Exceptions
# ============================================================================


class ExternalServiceError(AppException):
    """
    Raised when an external collaborator fails.

    HTTP Status: 502 Bad Gateway
    """

    status_code = 502
    default_message = "External service error"


# ============================================================================
# Billing Configuration Exceptions
# ============================================================================


class BillingConfigError(AppException):
    """
    Raised at startup when billing is enabled but misconfigured.

    WHY: A missing secret or price ID is unrecoverable. It must stop the
    service from starting instead of failing on every webhook delivery.
    """

    status_code = 500
    default_message = "Billing configuration is invalid"


class MissingWebhookSecretError(BillingConfigError):
    """STRIPE_WEBHOOK_SECRET is empty while billing is enabled."""

    default_message = "stripe: missing webhook signing secret"


class MissingEnterprisePriceError(BillingConfigError):
    """STRIPE_ENTERPRISE_PRICE_ID is empty while billing is enabled."""

    default_message = "stripe: missing enterprise price id"


# ============================================================================
# Webhook Authentication Exceptions (OWASP A02)
# ============================================================================


class WebhookRejectedError(AppException):
    """
    Base class for webhook deliveries that are refused before dispatch.

    WHY: Every subclass is answered with 400 so the provider retries the
    delivery. None of them ever reach the event dispatcher.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Webhook rejected"


class WebhookBodyReadError(WebhookRejectedError):
    """The request body could not be read."""

    default_message = "Failed to read request body"


class WebhookPayloadTooLargeError(WebhookBodyReadError):
    """The request body exceeds the configured maximum size."""

    default_message = "Request body too large"


class WebhookSignatureError(WebhookRejectedError):
    """Base class for signature verification failures."""

    default_message = "Invalid webhook signature"


class MissingSignatureHeaderError(WebhookSignatureError):
    """The Stripe-Signature header is absent or empty."""

    default_message = "Missing Stripe-Signature header"


class MalformedSignatureHeaderError(WebhookSignatureError):
    """The Stripe-Signature header cannot be parsed."""

    default_message = "Malformed Stripe-Signature header"


class SignatureTimestampOutOfToleranceError(WebhookSignatureError):
    """The signed timestamp is outside the accepted window."""

    default_message = "Webhook timestamp outside the tolerance zone"


class SignatureMismatchError(WebhookSignatureError):
    """No candidate signature matches the payload."""

    default_message = "No signatures found matching the expected signature for payload"


class InvalidWebhookPayloadError(WebhookRejectedError):
    """The authenticated body is not a valid event envelope."""

    default_message = "Invalid webhook payload"


class BillingDisabledError(WebhookRejectedError):
    """A webhook arrived while billing is disabled or has no signing secret."""

    default_message = "stripe: service is disabled"


# ============================================================================
# Billing Synchronization Exceptions
# ============================================================================


class BillingSyncError(AppException):
    """
    Base class for errors raised while applying an authentic event.

    WHY: These are logged and the delivery is still acknowledged with 200.
    Retrying the identical payload cannot fix them.
    """

    status_code = 200
    default_message = "Billing event could not be applied"


class BillingResolutionError(BillingSyncError):
    """An id referenced by the event has no local counterpart."""

    default_message = "Billing reference could not be resolved"


class CustomerNotFoundError(BillingResolutionError):
    """No organization or user is bound to the Stripe customer ID."""

    default_message = "stripe: customer not found"


class SubscriptionNotFoundError(BillingResolutionError):
    """No local subscription carries the Stripe subscription ID."""

    default_message = "stripe: subscription not found"


class OrganizationOwnerNotFoundError(BillingResolutionError):
    """The organization has no owner membership to bill against."""

    default_message = "organization owner not found"


class EventPayloadError(BillingResolutionError):
    """The event object does not match the shape expected for its type."""

    default_message = "Failed to decode event payload"


class DuplicateSubscriptionError(BillingSyncError):
    """
    A subscription with the same Stripe ID already exists.

    WHY: Expected under at-least-once delivery. The first delivery has
    already applied the state, so this is logged as a warning only.
    """

    default_message = "Duplicate subscription delivery"


class UsageSyncError(ExternalServiceError):
    """The usage-metering collaborator failed to update limits."""

    default_message = "Failed to sync usage limits"

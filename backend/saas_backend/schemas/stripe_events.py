"""
Stripe webhook event schemas.

WHAT: Pydantic models for the webhook envelope and the three event
objects the billing sync acts on (subscription, invoice, checkout session).

WHY: The envelope carries a type tag plus an opaque object. Decoding the
object into a fixed model chosen by the tag gives the handlers typed
fields instead of nested dict lookups, and rejects malformed payloads in
one place.

HOW: WebhookEnvelope is parsed from the verified raw body. decode_event()
then looks the type up in EVENT_PAYLOAD_MODELS and validates data.object
against the matching model. Unknown types decode with payload=None.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from pydantic import field_validator

from saas_backend.core.exceptions import EventPayloadError


class StripeEventType(str, Enum):
    """
    Event types handled by the billing sync.

    WHY: Anything not listed here is acknowledged and ignored.
    """

    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


def _expandable_id(value: Any) -> Any:
    """
    Collapse an expandable Stripe reference to its ID.

    WHY: Stripe sends references either as "cus_xxx" or, when expanded,
    as {"id": "cus_xxx", ...}.
    """
    if isinstance(value, dict):
        return value.get("id")
    return value


# Last second representable as a datetime (9999-12-31T23:59:59Z)
MAX_UNIX_TIMESTAMP = 253_402_300_799


class StripeObject(BaseModel):
    """Base for Stripe objects; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")


# ============================================================================
# Event Objects
# ============================================================================


class PriceRef(StripeObject):
    id: str = ""


class SubscriptionItem(StripeObject):
    price: Optional[PriceRef] = None


class SubscriptionItemList(StripeObject):
    data: List[SubscriptionItem] = Field(default_factory=list)


class SubscriptionObject(StripeObject):
    """
    Stripe Subscription object (customer.subscription.* events).
    """

    id: str
    customer: str = ""
    status: str = ""
    items: SubscriptionItemList = Field(default_factory=SubscriptionItemList)
    current_period_start: int = Field(default=0, ge=0, le=MAX_UNIX_TIMESTAMP)
    current_period_end: int = Field(default=0, ge=0, le=MAX_UNIX_TIMESTAMP)
    cancel_at_period_end: bool = False
    canceled_at: Optional[int] = Field(default=None, ge=0, le=MAX_UNIX_TIMESTAMP)

    @field_validator("customer", mode="before")
    @classmethod
    def _customer_id(cls, value: Any) -> Any:
        return _expandable_id(value) or ""

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> Any:
        return value or ""

    @property
    def price_id(self) -> str:
        """
        Price ID of the first subscription item.

        Returns:
            The price ID, or "" when there are no items (maps to FREE)
        """
        if not self.items.data:
            return ""
        price = self.items.data[0].price
        return price.id if price else ""


class InvoiceObject(StripeObject):
    """
    Stripe Invoice object (invoice.* events).
    """

    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def _reference_id(cls, value: Any) -> Any:
        return _expandable_id(value)


class CheckoutSessionObject(StripeObject):
    """
    Stripe Checkout Session object (checkout.session.* events).
    """

    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    mode: Optional[str] = None

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def _reference_id(cls, value: Any) -> Any:
        return _expandable_id(value)


EventPayload = Union[SubscriptionObject, InvoiceObject, CheckoutSessionObject]


EVENT_PAYLOAD_MODELS: Dict[str, Type[StripeObject]] = {
    StripeEventType.CHECKOUT_SESSION_COMPLETED.value: CheckoutSessionObject,
    StripeEventType.SUBSCRIPTION_CREATED.value: SubscriptionObject,
    StripeEventType.SUBSCRIPTION_UPDATED.value: SubscriptionObject,
    StripeEventType.SUBSCRIPTION_DELETED.value: SubscriptionObject,
    StripeEventType.INVOICE_PAYMENT_FAILED.value: InvoiceObject,
}


# ============================================================================
# Envelope
# ============================================================================


class EventData(StripeObject):
    object: Dict[str, Any] = Field(default_factory=dict)


class WebhookEnvelope(StripeObject):
    """
    Outer Stripe event as received on the wire.
    """

    id: str = ""
    type: str
    created: int = 0
    data: EventData = Field(default_factory=EventData)


@dataclass(frozen=True)
class WebhookEvent:
    """
    A verified event with its object decoded for its type.

    payload is None for event types the billing sync does not handle.
    """

    id: str
    type: str
    created: int
    payload: Optional[EventPayload]


def decode_event(envelope: WebhookEnvelope) -> WebhookEvent:
    """
    Decode the event object into the model registered for its type.

    Args:
        envelope: Parsed webhook envelope

    Returns:
        WebhookEvent with a typed payload

    Raises:
        EventPayloadError: If the object does not fit the model for its type
    """
    model = EVENT_PAYLOAD_MODELS.get(envelope.type)
    if model is None:
        return WebhookEvent(
            id=envelope.id, type=envelope.type, created=envelope.created, payload=None
        )

    try:
        payload = model.model_validate(envelope.data.object)
    except PydanticValidationError as e:
        raise EventPayloadError(
            message=f"Failed to decode {envelope.type} payload",
            event_id=envelope.id,
            event_type=envelope.type,
            errors=e.error_count(),
        ) from e

    return WebhookEvent(
        id=envelope.id, type=envelope.type, created=envelope.created, payload=payload
    )


# ============================================================================
# Responses
# ============================================================================


class WebhookResponse(BaseModel):
    """
    Acknowledgment returned for every authentic delivery.
    """

    success: bool = True
    message: str = "Webhook processed"


class WebhookErrorResponse(BaseModel):
    """
    Body returned when a delivery is rejected before dispatch.
    """

    error: str = "Bad Request"
    message: str
    code: int = 400

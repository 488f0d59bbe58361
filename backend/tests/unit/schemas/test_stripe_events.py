"""
Tests for Stripe event decoding.
"""

import pytest

from saas_backend.core.exceptions import EventPayloadError
from saas_backend.schemas.stripe_events import (
    CheckoutSessionObject,
    InvoiceObject,
    MAX_UNIX_TIMESTAMP,
    SubscriptionObject,
    WebhookEnvelope,
    decode_event,
)
from tests.factories import (
    stripe_checkout_session,
    stripe_event,
    stripe_invoice,
    stripe_subscription,
)


def _decode(event_type, data_object):
    return decode_event(WebhookEnvelope.model_validate(stripe_event(event_type, data_object)))


class TestDecodeEvent:
    """Tests for decode_event."""

    @pytest.mark.parametrize(
        "event_type",
        [
            "customer.subscription.created",
            "customer.subscription.updated",
            "customer.subscription.deleted",
        ],
    )
    def test_subscription_events(self, event_type):
        event = _decode(event_type, stripe_subscription(price_id="price_pro"))

        assert isinstance(event.payload, SubscriptionObject)
        assert event.payload.price_id == "price_pro"
        assert event.payload.customer == "cus_1"
        assert event.type == event_type
        assert event.id == "evt_1"

    def test_invoice_event(self):
        event = _decode("invoice.payment_failed", stripe_invoice())
        assert isinstance(event.payload, InvoiceObject)
        assert event.payload.subscription == "sub_1"

    def test_checkout_event(self):
        event = _decode("checkout.session.completed", stripe_checkout_session())
        assert isinstance(event.payload, CheckoutSessionObject)

    def test_unknown_type_has_no_payload(self):
        event = _decode("charge.refunded", {"id": "ch_1", "amount": 100})
        assert event.payload is None

    def test_known_type_with_wrong_shape(self):
        """
        WHY: A subscription event without an id cannot be applied.
        """
        with pytest.raises(EventPayloadError) as exc_info:
            _decode("customer.subscription.created", {"status": "active"})
        assert exc_info.value.context["event_type"] == "customer.subscription.created"

    @pytest.mark.parametrize(
        "field", ["current_period_start", "current_period_end", "canceled_at"]
    )
    def test_timestamp_beyond_datetime_range(self, field):
        """
        WHY: A year past 9999 cannot be stored; it must fail decoding, not
        blow up later in the synchronizer.
        """
        data = stripe_subscription()
        data[field] = 10**13
        with pytest.raises(EventPayloadError):
            _decode("customer.subscription.created", data)


class TestSubscriptionObject:
    """Tests for SubscriptionObject field handling."""

    def test_no_items_gives_empty_price(self):
        sub = SubscriptionObject.model_validate(stripe_subscription(price_id=None))
        assert sub.price_id == ""

    def test_first_item_price_wins(self):
        data = stripe_subscription(price_id="price_a")
        data["items"]["data"].append({"id": "si_2", "price": {"id": "price_b"}})
        assert SubscriptionObject.model_validate(data).price_id == "price_a"

    def test_expanded_customer(self):
        data = stripe_subscription(customer={"id": "cus_9", "email": "a@b.c"})
        assert SubscriptionObject.model_validate(data).customer == "cus_9"

    def test_latest_representable_timestamp(self):
        sub = SubscriptionObject.model_validate(
            stripe_subscription(current_period_end=MAX_UNIX_TIMESTAMP)
        )
        assert sub.current_period_end == MAX_UNIX_TIMESTAMP

    def test_null_canceled_at(self):
        sub = SubscriptionObject.model_validate(stripe_subscription(canceled_at=None))
        assert sub.canceled_at is None

    def test_expanded_invoice_subscription(self):
        invoice = InvoiceObject.model_validate(
            {"id": "in_1", "customer": {"id": "cus_1"}, "subscription": {"id": "sub_1"}}
        )
        assert invoice.customer == "cus_1"
        assert invoice.subscription == "sub_1"


class TestWebhookEnvelope:
    """Tests for envelope parsing."""

    def test_parses_raw_json(self):
        envelope = WebhookEnvelope.model_validate_json(
            b'{"id":"evt_9","type":"ping","created":1,"data":{"object":{"id":"x"}}}'
        )
        assert envelope.id == "evt_9"
        assert envelope.data.object == {"id": "x"}

    def test_type_is_required(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            WebhookEnvelope.model_validate_json(b'{"id":"evt_9"}')

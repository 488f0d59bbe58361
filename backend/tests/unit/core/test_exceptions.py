"""
Tests for custom exception hierarchy.

WHY: The billing pipeline branches on exception classes, so the hierarchy
itself is behavior:
1. Exceptions serialize without leaking secrets or signatures
2. Every webhook rejection is a 400 WebhookRejectedError
3. Every resolution failure is a BillingResolutionError
4. Exception handlers render the documented response shapes
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from saas_backend.core.exception_handlers import app_exception_handler, webhook_rejected_handler
from saas_backend.core.exceptions import (
    AppException,
    BillingConfigError,
    BillingDisabledError,
    BillingResolutionError,
    BillingSyncError,
    CustomerNotFoundError,
    DuplicateSubscriptionError,
    EventPayloadError,
    InvalidWebhookPayloadError,
    MalformedSignatureHeaderError,
    MissingEnterprisePriceError,
    MissingSignatureHeaderError,
    MissingWebhookSecretError,
    OrganizationOwnerNotFoundError,
    SignatureMismatchError,
    SignatureTimestampOutOfToleranceError,
    SubscriptionNotFoundError,
    UsageSyncError,
    WebhookBodyReadError,
    WebhookPayloadTooLargeError,
    WebhookRejectedError,
    WebhookSignatureError,
)


class TestAppException:
    """Test base AppException class."""

    def test_default_message(self):
        exc = AppException()
        assert exc.message == "An unexpected error occurred"
        assert exc.status_code == 500

    def test_custom_message_and_status(self):
        exc = AppException(message="Custom", status_code=418)
        assert exc.message == "Custom"
        assert exc.status_code == 418

    def test_context_data(self):
        exc = AppException(subscription_id="sub_1", customer_id="cus_1")
        assert exc.context == {"subscription_id": "sub_1", "customer_id": "cus_1"}

    def test_to_dict_filters_sensitive_data(self):
        """
        WHY: Webhook secrets and signatures must never reach a response body.
        """
        exc = AppException(
            message="boom",
            secret="whsec_123",
            signature="t=1,v1=abc",
            api_key="sk_live",
            event_id="evt_1",
        )
        result = exc.to_dict()
        assert result["details"] == {"event_id": "evt_1"}
        assert "whsec_123" not in str(result)

    def test_to_dict_no_context(self):
        assert AppException().to_dict()["details"] is None


class TestWebhookRejections:
    """Webhook rejections all answer 400."""

    @pytest.mark.parametrize(
        "exc_class",
        [
            WebhookBodyReadError,
            WebhookPayloadTooLargeError,
            MissingSignatureHeaderError,
            MalformedSignatureHeaderError,
            SignatureTimestampOutOfToleranceError,
            SignatureMismatchError,
            InvalidWebhookPayloadError,
            BillingDisabledError,
        ],
    )
    def test_is_400_rejection(self, exc_class):
        exc = exc_class()
        assert isinstance(exc, WebhookRejectedError)
        assert exc.status_code == 400

    @pytest.mark.parametrize(
        "exc_class",
        [
            MissingSignatureHeaderError,
            MalformedSignatureHeaderError,
            SignatureTimestampOutOfToleranceError,
            SignatureMismatchError,
        ],
    )
    def test_signature_failures_share_base(self, exc_class):
        assert issubclass(exc_class, WebhookSignatureError)

    def test_too_large_is_a_body_read_error(self):
        assert issubclass(WebhookPayloadTooLargeError, WebhookBodyReadError)

    def test_disabled_message(self):
        assert BillingDisabledError().message == "stripe: service is disabled"


class TestBillingSyncErrors:
    """Errors raised after authentication are acknowledged."""

    @pytest.mark.parametrize(
        "exc_class",
        [
            CustomerNotFoundError,
            SubscriptionNotFoundError,
            OrganizationOwnerNotFoundError,
            EventPayloadError,
        ],
    )
    def test_resolution_errors(self, exc_class):
        assert issubclass(exc_class, BillingResolutionError)
        assert exc_class().status_code == 200

    def test_duplicate_is_not_a_resolution_error(self):
        assert issubclass(DuplicateSubscriptionError, BillingSyncError)
        assert not issubclass(DuplicateSubscriptionError, BillingResolutionError)

    def test_messages(self):
        assert CustomerNotFoundError().message == "stripe: customer not found"
        assert SubscriptionNotFoundError().message == "stripe: subscription not found"

    def test_usage_sync_error_is_external(self):
        assert UsageSyncError().status_code == 502


class TestBillingConfigErrors:
    """Startup configuration errors."""

    def test_hierarchy(self):
        assert issubclass(MissingWebhookSecretError, BillingConfigError)
        assert issubclass(MissingEnterprisePriceError, BillingConfigError)


class TestExceptionHandlerIntegration:
    """Test exception handlers with FastAPI."""

    @pytest.fixture
    def client(self):
        app = FastAPI()
        app.add_exception_handler(WebhookRejectedError, webhook_rejected_handler)
        app.add_exception_handler(AppException, app_exception_handler)

        @app.post("/reject")
        async def reject():
            raise SignatureMismatchError(signature="t=1,v1=abc")

        @app.get("/missing")
        async def missing():
            raise SubscriptionNotFoundError(status_code=404, subscription_id="sub_1")

        return TestClient(app)

    def test_webhook_rejection_shape(self, client):
        response = client.post("/reject")

        assert response.status_code == 400
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {
            "error": "Bad Request",
            "message": "No signatures found matching the expected signature for payload",
            "code": 400,
        }

    def test_app_exception_shape(self, client):
        response = client.get("/missing")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "SubscriptionNotFoundError"
        assert body["details"] == {"subscription_id": "sub_1"}

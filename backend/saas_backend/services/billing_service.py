"""
Billing webhook service.

WHAT: Entry point for Stripe webhook deliveries. Verifies, decodes,
dispatches and commits one event, then runs its usage-limit syncs.

WHY: Every authentic delivery must be acknowledged, otherwise Stripe
retries it for days. Only deliveries that fail authentication (or arrive
while billing is off) are answered with 400. Everything that goes wrong
after authentication is logged with its identifiers, rolled back, and
still acknowledged.

HOW: BillingService is built once at startup from a validated
BillingConfig and stored on app.state; request handlers receive it via
a FastAPI dependency. Each call gets the request's AsyncSession.

Error outcomes:
- WebhookRejectedError subclasses -> propagate, rendered as 400
- BillingResolutionError -> one error log, rollback, 200
- DuplicateSubscriptionError -> warning, rollback, 200
- other SQLAlchemyError -> error log, rollback, 200
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from saas_backend.core.config import Settings
from saas_backend.core.exceptions import (
    BillingDisabledError,
    BillingResolutionError,
    DuplicateSubscriptionError,
    InvalidWebhookPayloadError,
    MissingEnterprisePriceError,
    MissingWebhookSecretError,
    WebhookSignatureError,
)
from saas_backend.schemas.stripe_events import WebhookEnvelope, WebhookResponse, decode_event
from saas_backend.services.plan_mapper import PlanMapper
from saas_backend.services.usage_service import (
    UsageLimitSynchronizer,
    UsageLimitUpdater,
    UsageService,
)
from saas_backend.services.webhook_dispatcher import EventDispatcher
from saas_backend.services.webhook_signature import (
    DEFAULT_TOLERANCE_SECONDS,
    MAX_BODY_BYTES,
    WebhookSignatureVerifier,
    check_body_size,
)

logger = logging.getLogger(__name__)


UsageUpdaterFactory = Callable[[AsyncSession], UsageLimitUpdater]


# ============================================================================
# Configuration
# ============================================================================


@dataclass(frozen=True)
class BillingConfig:
    """
    Billing settings resolved from the environment.
    """

    enabled: bool = False
    webhook_secret: str = ""
    premium_price_id: str = ""
    enterprise_price_id: str = ""
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS
    max_body_bytes: int = MAX_BODY_BYTES

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "BillingConfig":
        return cls(
            enabled=app_settings.stripe_enabled,
            webhook_secret=app_settings.STRIPE_WEBHOOK_SECRET,
            premium_price_id=app_settings.STRIPE_PREMIUM_PRICE_ID,
            enterprise_price_id=app_settings.STRIPE_ENTERPRISE_PRICE_ID,
            tolerance_seconds=app_settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            max_body_bytes=app_settings.STRIPE_WEBHOOK_MAX_BODY_BYTES,
        )

    def validate(self) -> None:
        """
        Fail fast on an enabled but incomplete configuration.

        Raises:
            MissingWebhookSecretError: No webhook signing secret
            MissingEnterprisePriceError: No enterprise price ID
        """
        if not self.enabled:
            return
        if not self.webhook_secret:
            raise MissingWebhookSecretError()
        if not self.enterprise_price_id:
            raise MissingEnterprisePriceError()

    @property
    def is_available(self) -> bool:
        """True when webhooks can be verified and processed."""
        return self.enabled and bool(self.webhook_secret)

    @property
    def plan_mapper(self) -> PlanMapper:
        return PlanMapper(
            premium_price_id=self.premium_price_id,
            enterprise_price_id=self.enterprise_price_id,
        )


# ============================================================================
# Service
# ============================================================================


class BillingService:
    """
    Processes Stripe webhook deliveries.
    """

    def __init__(
        self,
        config: BillingConfig,
        usage_updater_factory: Optional[UsageUpdaterFactory] = None,
        verifier: Optional[WebhookSignatureVerifier] = None,
    ):
        self.config = config
        self.plan_mapper = config.plan_mapper
        self.verifier = verifier or WebhookSignatureVerifier(
            secret=config.webhook_secret,
            tolerance_seconds=config.tolerance_seconds,
        )
        self._usage_updater_factory = usage_updater_factory or self._default_usage_updater

    @classmethod
    def from_config(
        cls,
        config: BillingConfig,
        usage_updater_factory: Optional[UsageUpdaterFactory] = None,
    ) -> "BillingService":
        """
        Validate the configuration and build the service.

        WHY: Runs once at startup, so a misconfiguration stops the process
        instead of surfacing on the first delivery.

        Raises:
            BillingConfigError: If billing is enabled but incomplete
        """
        config.validate()
        if not config.enabled:
            logger.info("Stripe billing is disabled")
        return cls(config, usage_updater_factory=usage_updater_factory)

    @property
    def is_available(self) -> bool:
        return self.config.is_available

    def _default_usage_updater(self, session: AsyncSession) -> UsageLimitUpdater:
        return UsageService(session, self.plan_mapper)

    def verify(self, body: bytes, signature: Optional[str]) -> WebhookEnvelope:
        """
        Authenticate a delivery and parse its envelope.

        Raises:
            BillingDisabledError: Billing is off or has no signing secret
            WebhookPayloadTooLargeError: Body over the size cap
            WebhookSignatureError: Any signature failure
            InvalidWebhookPayloadError: Body is not an event envelope
        """
        if not self.is_available:
            raise BillingDisabledError()

        check_body_size(body, self.config.max_body_bytes)

        try:
            self.verifier.verify(body, signature)
        except WebhookSignatureError as e:
            logger.warning(
                f"Webhook signature verification failed: {e.message}",
                extra={"reason": e.__class__.__name__},
            )
            raise

        try:
            return WebhookEnvelope.model_validate_json(body)
        except PydanticValidationError as e:
            raise InvalidWebhookPayloadError(errors=e.error_count()) from e

    async def process_webhook(
        self,
        session: AsyncSession,
        body: bytes,
        signature: Optional[str],
    ) -> WebhookResponse:
        """
        Process one Stripe webhook delivery.

        HOW:
        1. Verify and parse (failures propagate as 400)
        2. Decode and dispatch in one transaction, commit
        3. Run deferred usage-limit syncs, each in its own transaction

        Args:
            session: Request database session
            body: Raw request body
            signature: Stripe-Signature header value

        Returns:
            Acknowledgment for every authentic delivery
        """
        envelope = self.verify(body, signature)
        log_extra = {"event_id": envelope.id, "event_type": envelope.type}

        logger.info(
            f"Received Stripe webhook {envelope.type}",
            extra=log_extra,
        )

        try:
            event = decode_event(envelope)
            result = await EventDispatcher(session, self.plan_mapper).dispatch(event)
            await session.commit()
        except BillingResolutionError as e:
            await session.rollback()
            logger.error(
                f"Failed to apply {envelope.type}: {e.message}",
                extra={**log_extra, **e.context},
            )
            return WebhookResponse()
        except DuplicateSubscriptionError as e:
            await session.rollback()
            logger.warning(
                f"Ignoring duplicate {envelope.type}: {e.message}",
                extra={**log_extra, **e.context},
            )
            return WebhookResponse()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(
                f"Database error while applying {envelope.type}: {e}",
                extra=log_extra,
            )
            return WebhookResponse()

        if result.usage_updates:
            usage_sync = UsageLimitSynchronizer(session, self._usage_updater_factory(session))
            for update in result.usage_updates:
                await usage_sync.apply(update)

        return WebhookResponse()

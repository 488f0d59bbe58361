"""
Stripe webhook API route.

WHAT: POST /api/webhooks/stripe receives Stripe event deliveries.

WHY: Stripe is the source of truth for billing. Webhooks are how
subscription, plan and role changes reach this backend.

SECURITY (OWASP A02):
- The raw body is read with a hard size cap before anything else
- The signature is verified against the raw bytes before parsing
- The request Content-Type is ignored; the body is always treated as JSON
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import ClientDisconnect

from saas_backend.core.exceptions import WebhookBodyReadError, WebhookPayloadTooLargeError
from saas_backend.db.session import get_db
from saas_backend.schemas.stripe_events import WebhookErrorResponse, WebhookResponse
from saas_backend.services.billing_service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def get_billing_service(request: Request) -> BillingService:
    """
    Dependency returning the BillingService built at startup.
    """
    return request.app.state.billing_service


async def read_body_limited(request: Request, max_bytes: int) -> bytes:
    """
    Read the request body, refusing anything longer than max_bytes.

    WHY: Streaming lets an oversized body be rejected without buffering it
    all. Exactly max_bytes is accepted.

    Raises:
        WebhookPayloadTooLargeError: Body exceeds max_bytes
        WebhookBodyReadError: Client disconnected mid-body
    """
    body = bytearray()
    try:
        async for chunk in request.stream():
            body.extend(chunk)
            if len(body) > max_bytes:
                raise WebhookPayloadTooLargeError(max_bytes=max_bytes)
    except ClientDisconnect as e:
        raise WebhookBodyReadError() from e
    return bytes(body)


@router.post(
    "/stripe",
    response_model=WebhookResponse,
    responses={400: {"model": WebhookErrorResponse}},
    summary="Stripe webhook",
    description="Receives and processes Stripe webhook events.",
)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    billing: BillingService = Depends(get_billing_service),
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
) -> WebhookResponse:
    """
    Handle a Stripe webhook delivery.

    Returns 200 for every authentic delivery, even when the event could not
    be applied, so Stripe does not retry it. Returns 400 when the body is
    too large or unreadable, the signature fails, or billing is disabled.
    """
    body = await read_body_limited(request, billing.config.max_body_bytes)
    return await billing.process_webhook(db, body, stripe_signature)

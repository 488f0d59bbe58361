"""
Stripe webhook signature verification.

WHAT: Authenticates a raw webhook body against the Stripe-Signature header
and the shared signing secret.

WHY: The webhook endpoint is public. Without verification anyone could
forge subscription events and grant themselves paid access (OWASP A02).
The timestamp window limits how long a captured delivery can be replayed.

HOW: Stripe signs "{timestamp}.{raw_body}" with HMAC-SHA256. The header
carries the timestamp and one or more v1 signatures:

    t=1700000000,v1=5257a8...,v1=9c1f02...

Several v1 entries appear while a signing secret is being rotated; any one
match is enough. The HMAC comparison is done by the Stripe SDK; this module
adds strict header parsing and a symmetric timestamp window. Each failure
raises its own exception class so callers and logs can tell them apart.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import stripe

from saas_backend.core.exceptions import (
    MalformedSignatureHeaderError,
    MissingSignatureHeaderError,
    SignatureMismatchError,
    SignatureTimestampOutOfToleranceError,
    WebhookPayloadTooLargeError,
)

logger = logging.getLogger(__name__)


# Largest accepted webhook body; one byte more is rejected
MAX_BODY_BYTES = 65536

DEFAULT_TOLERANCE_SECONDS = stripe.Webhook.DEFAULT_TOLERANCE

SIGNATURE_SCHEME = stripe.WebhookSignature.EXPECTED_SCHEME
TIMESTAMP_KEY = "t"


@dataclass(frozen=True)
class SignatureHeader:
    """Parsed Stripe-Signature header."""

    timestamp: int
    signatures: List[str] = field(default_factory=list)


def compute_signature(timestamp: int, body: bytes, secret: str) -> str:
    """
    Compute the hex HMAC-SHA256 Stripe would send for a body.

    Args:
        timestamp: Unix timestamp from the header
        body: Raw request body, exactly as received
        secret: Webhook signing secret (whsec_xxx)

    Returns:
        Lowercase hex digest
    """
    signed_payload = f"{timestamp}.{body.decode('utf-8')}"
    return stripe.WebhookSignature._compute_signature(signed_payload, secret)


def build_signature_header(body: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """
    Build a Stripe-Signature header value for a body.

    WHY: Used to sign fixtures and local replays the same way Stripe does.
    """
    if timestamp is None:
        timestamp = int(time.time())
    signature = compute_signature(timestamp, body, secret)
    return f"{TIMESTAMP_KEY}={timestamp},{SIGNATURE_SCHEME}={signature}"


def check_body_size(body: bytes, max_bytes: int = MAX_BODY_BYTES) -> None:
    """
    Reject bodies above the size cap before any verification work.

    Raises:
        WebhookPayloadTooLargeError: If body is longer than max_bytes
    """
    if len(body) > max_bytes:
        raise WebhookPayloadTooLargeError(size=len(body), max_bytes=max_bytes)


def _is_plain_integer(value: str) -> bool:
    return value.isascii() and value.isdigit()


def parse_signature_header(header: Optional[str]) -> SignatureHeader:
    """
    Parse a Stripe-Signature header strictly.

    WHAT: Splits on "," into key=value pairs. Keys other than t and v1
    (for example the legacy v0 scheme) are ignored.

    WHY: Whitespace, other delimiters, a missing or non-numeric timestamp
    and empty signatures are all treated as malformed rather than
    normalized.

    Raises:
        MissingSignatureHeaderError: If the header is absent or empty
        MalformedSignatureHeaderError: If the header cannot be parsed
    """
    if not header:
        raise MissingSignatureHeaderError()

    timestamp: Optional[int] = None
    signatures: List[str] = []

    for item in header.split(","):
        key, sep, value = item.partition("=")
        if not sep:
            raise MalformedSignatureHeaderError(reason="item without '='")

        if key == TIMESTAMP_KEY:
            if not _is_plain_integer(value):
                raise MalformedSignatureHeaderError(reason="timestamp is not an integer")
            timestamp = int(value)
        elif key == SIGNATURE_SCHEME:
            if value:
                signatures.append(value)

    if timestamp is None:
        raise MalformedSignatureHeaderError(reason="no timestamp")
    if not signatures:
        raise MalformedSignatureHeaderError(reason=f"no {SIGNATURE_SCHEME} signature")

    return SignatureHeader(timestamp=timestamp, signatures=signatures)


class WebhookSignatureVerifier:
    """
    Verifies Stripe webhook deliveries against one signing secret.

    WHY: Holds the secret and tolerance so the request path only passes
    the body and header. The clock is injectable for tests.
    """

    def __init__(
        self,
        secret: str,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.secret = secret
        self.tolerance_seconds = tolerance_seconds
        self._clock = clock

    def verify(self, body: bytes, header: Optional[str]) -> SignatureHeader:
        """
        Verify a webhook body and its Stripe-Signature header.

        HOW:
        1. Parse the header
        2. Check the timestamp is within tolerance, in either direction
        3. Let the Stripe SDK compare the expected HMAC against every v1
           candidate in constant time

        The SDK only rejects stale timestamps, so the window (including
        the future side) is checked here against the injected clock and
        the SDK is called without a tolerance.

        Args:
            body: Raw request body
            header: Stripe-Signature header value

        Returns:
            The parsed header of the accepted delivery

        Raises:
            MissingSignatureHeaderError: Header absent
            MalformedSignatureHeaderError: Header unparseable
            SignatureTimestampOutOfToleranceError: Timestamp too old or too far ahead
            SignatureMismatchError: No candidate matches
        """
        parsed = parse_signature_header(header)

        now = int(self._clock())
        if abs(now - parsed.timestamp) > self.tolerance_seconds:
            raise SignatureTimestampOutOfToleranceError(
                timestamp=parsed.timestamp,
                now=now,
                tolerance=self.tolerance_seconds,
            )

        try:
            payload = body.decode("utf-8")
        except UnicodeDecodeError as e:
            # Stripe only signs UTF-8 JSON
            raise SignatureMismatchError(candidates=len(parsed.signatures)) from e

        try:
            stripe.WebhookSignature.verify_header(payload, header, self.secret)
        except stripe.SignatureVerificationError as e:
            raise SignatureMismatchError(candidates=len(parsed.signatures)) from e

        return parsed

"""HMAC signatures for the Flouci webhook.

The sender signs the raw request body with HMAC-SHA256 under the shared
``FLOUCI_WEBHOOK_SECRET`` and sends the hex digest in
``x-flouci-signature``.  The digest is computed over the bytes exactly as
received; re-serializing the parsed JSON would change whitespace and
key order and break the comparison.
"""

from __future__ import annotations

import hashlib
import hmac
import logging

from shabaka.core.errors import UnauthorizedError
from shabaka.core.metrics import WEBHOOK_EVENTS

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-flouci-signature"


def sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str | None, body: bytes, signature: str | None) -> None:
    """Raise UnauthorizedError unless ``signature`` matches ``body``.

    With no secret configured the check is skipped entirely, so
    environments without a shared secret still accept webhooks.
    """
    if not secret:
        logger.warning("FLOUCI_WEBHOOK_SECRET not set, accepting unsigned webhook")
        return

    if not signature:
        WEBHOOK_EVENTS.labels(provider="flouci", result="bad_signature").inc()
        raise UnauthorizedError("Missing webhook signature")

    expected = sign(secret, body)
    if not hmac.compare_digest(expected, signature.strip().lower()):
        WEBHOOK_EVENTS.labels(provider="flouci", result="bad_signature").inc()
        logger.warning("Flouci webhook signature mismatch")
        raise UnauthorizedError("Invalid webhook signature")

"""Nango webhook signature verification."""

import hashlib
import hmac
import logging
from typing import Mapping

logger = logging.getLogger(__name__)

HMAC_HEADER = "x-nango-hmac-sha256"
LEGACY_HEADER = "x-nango-signature"


def verify_nango_signature(secret: str, body: bytes, headers: Mapping[str, str]) -> bool:
    """
    Check a webhook body against Nango's signature headers.

    ``X-Nango-Hmac-Sha256`` is HMAC-SHA256(secret, body) in hex. The older
    ``X-Nango-Signature`` is SHA-256(secret + body) in hex. With no secret
    configured verification is skipped and the delivery accepted.
    """
    if not secret:
        logger.warning("NANGO_WEBHOOK_SECRET not configured, skipping verification")
        return True

    lowered = {k.lower(): v for k, v in headers.items()}
    received = lowered.get(HMAC_HEADER)
    if received:
        expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, received.strip())

    received = lowered.get(LEGACY_HEADER)
    if received:
        expected = hashlib.sha256(secret.encode() + body).hexdigest()
        return hmac.compare_digest(expected, received.strip())

    logger.warning("Webhook delivery carried no signature header")
    return False

import hmac
import hashlib
import os
from typing import Optional


SIGNATURE_PREFIX = "sha256="


def verify_signature(
    payload: bytes,
    signature: Optional[str],
    secret: Optional[str] = None,
) -> bool:
    """
    Verify a GitHub X-Hub-Signature-256 header against the raw body.

    Only ``sha256=<hex>`` is accepted. The secret defaults to the
    GITHUB_WEBHOOK_SECRET environment variable, read at call time.

    Returns False on any validation failure.
    """
    if not signature:
        return False

    secret = secret or os.getenv("GITHUB_WEBHOOK_SECRET")
    if not secret:
        return False

    signature = signature.strip()
    if not signature.startswith(SIGNATURE_PREFIX):
        return False

    try:
        mac = hmac.new(secret.encode(), msg=payload, digestmod=hashlib.sha256)
        expected = SIGNATURE_PREFIX + mac.hexdigest()
        return hmac.compare_digest(expected, signature)
    except (TypeError, ValueError):
        return False

"""Webhook signature verification (``X-Hub-Signature-256``)."""

import hashlib
import hmac

from pagewire.core.exceptions import SignatureInvalid

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="


def compute_signature(payload: bytes, app_secret: str) -> str:
    """Return the header value the platform would send for ``payload``."""
    digest = hmac.new(app_secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: bytes, signature: str | None, app_secret: str) -> None:
    """
    Check the HMAC-SHA256 of the raw body against the signature header.

    Raises:
        SignatureInvalid: Header missing, malformed, or not matching the body
    """
    if not app_secret:
        raise SignatureInvalid("App secret is not configured")
    if not signature:
        raise SignatureInvalid(f"Missing {SIGNATURE_HEADER} header")
    if not signature.startswith(SIGNATURE_PREFIX):
        raise SignatureInvalid("Invalid signature format - must start with 'sha256='")

    expected = compute_signature(payload, app_secret)
    if not hmac.compare_digest(expected, signature.strip()):
        raise SignatureInvalid("Webhook signature does not match payload")

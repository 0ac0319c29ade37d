"""GitHub webhook signature verification."""
import hmac
import hashlib
from typing import Optional

from sampha.config import settings


def verify_github_signature(
    payload_body: bytes,
    signature_header: Optional[str],
    secret: str
) -> bool:
    """Verify GitHub webhook signature using HMAC-SHA256.

    Args:
        payload_body: Raw request body as bytes
        signature_header: X-Hub-Signature-256 header value (format: sha256=<hex>)
        secret: Webhook secret string

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature_header or not signature_header.startswith("sha256="):
        return False

    expected_signature = signature_header.split("=", 1)[1]
    computed_signature = sign_payload(payload_body, secret).split("=", 1)[1]

    # Constant-time comparison
    return hmac.compare_digest(computed_signature, expected_signature)


def sign_payload(payload_body: bytes, secret: str) -> str:
    """Header value GitHub would send for ``payload_body``."""
    mac = hmac.new(
        key=secret.encode("utf-8"),
        msg=payload_body,
        digestmod=hashlib.sha256
    )
    return f"sha256={mac.hexdigest()}"


def get_webhook_secret() -> Optional[str]:
    """Configured webhook secret, or None when webhooks are disabled."""
    return settings.github_webhook_secret or None

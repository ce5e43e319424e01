"""
Security utilities: webhook signatures and admin key checks.
"""
import base64
import hashlib
import hmac
from typing import Optional

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def compute_shopify_hmac(secret: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 digest of a raw request body."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def verify_shopify_hmac(
    hmac_header: Optional[str],
    body: bytes,
    secret: Optional[str] = None,
) -> bool:
    """Verify Shopify webhook HMAC signature."""
    secret = secret or settings.shopify_webhook_secret
    if not secret:
        logger.warning("Shopify webhook secret not configured, rejecting webhook")
        return False

    if not hmac_header:
        return False

    computed_hmac = compute_shopify_hmac(secret, body)
    return hmac.compare_digest(computed_hmac, hmac_header.strip())


def verify_admin_key(admin_key: Optional[str]) -> bool:
    """Constant-time comparison against the configured admin key."""
    if not settings.admin_api_key or not admin_key:
        return False
    return hmac.compare_digest(settings.admin_api_key, admin_key)

"""
Core package containing configuration, database, security, and logging.
"""
from app.core.config import settings
from app.core.database import Base, init_db, is_db_available
from app.core.exceptions import MirrorNotFoundError, PayloadError, SyncError, WebhookAuthError
from app.core.logging import configure_logging, get_logger
from app.core.security import verify_admin_key, verify_shopify_hmac

__all__ = [
    "settings",
    "Base",
    "init_db",
    "is_db_available",
    "configure_logging",
    "get_logger",
    "SyncError",
    "PayloadError",
    "MirrorNotFoundError",
    "WebhookAuthError",
    "verify_shopify_hmac",
    "verify_admin_key",
]

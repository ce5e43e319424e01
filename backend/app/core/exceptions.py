"""
Domain exceptions raised by the reconciliation pipeline.

Each carries the HTTP status and public `error` label it maps to when it
escapes a request; `ErrorHandlerMiddleware` renders them.
"""


class SyncError(Exception):
    """Base class for reconciliation failures."""

    status_code = 500
    error = "Sync failed"
    # Whether str(exc) is safe to return to the caller
    expose_message = True


class PayloadError(SyncError):
    """Inbound payload could not be parsed into a canonical product."""

    status_code = 400
    error = "Bad request"


class MirrorNotFoundError(SyncError):
    """No mirror record exists for a canonical product id."""

    status_code = 404
    error = "Not found"

    def __init__(self, shopify_id: str) -> None:
        self.shopify_id = shopify_id
        super().__init__(f"Mirror record not found for Shopify product {shopify_id}")


class WebhookAuthError(SyncError):
    """Webhook signature missing or invalid."""

    status_code = 401
    error = "Unauthorized"
    expose_message = False

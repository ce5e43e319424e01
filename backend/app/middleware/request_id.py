"""
Request ID middleware for tracing.

Shopify deliveries carry `X-Shopify-Webhook-Id`; it is bound alongside the
request id so retries of the same delivery can be correlated in the logs.
"""
import uuid

import structlog
from starlette.types import ASGIApp, Receive, Scope, Send


class RequestIdMiddleware:
    """
    Pure ASGI middleware that adds a unique request ID to each request.
    The ID is added to response headers and logging context.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(b"x-request-id", b"").decode("utf-8") or str(uuid.uuid4())
        webhook_id = headers.get(b"x-shopify-webhook-id", b"").decode("utf-8")

        structlog.contextvars.bind_contextvars(request_id=request_id)
        if webhook_id:
            structlog.contextvars.bind_contextvars(webhook_id=webhook_id)

        if "state" not in scope:
            scope["state"] = {}
        scope["state"]["request_id"] = request_id

        async def send_with_request_id(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append([b"x-request-id", request_id.encode("utf-8")])
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_with_request_id)

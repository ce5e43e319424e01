"""
Error handling middleware.

Renders `SyncError` subclasses with the status they declare and turns any
other unhandled exception into a JSON 500. Every body has the `ok`/`error`
shape the webhook routes use.
"""
import json
from typing import Any

from fastapi import HTTPException
from starlette.types import ASGIApp, Receive, Scope, Send

from app.core.exceptions import SyncError
from app.core.logging import get_logger

logger = get_logger(__name__)


def error_body(exc: Exception) -> tuple[int, dict[str, Any]]:
    """Status code and JSON body for an exception that escaped a route."""
    if isinstance(exc, SyncError):
        body: dict[str, Any] = {"ok": False, "error": exc.error}
        if exc.expose_message and str(exc):
            body["message"] = str(exc)
        return exc.status_code, body
    return 500, {"ok": False, "error": "Internal server error", "type": type(exc).__name__}


class ErrorHandlerMiddleware:
    """
    Pure ASGI error handler.

    HTTPException passes through to FastAPI's own handler. Once the
    response has started nothing can be rewritten, so the exception is
    logged and re-raised.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except HTTPException:
            raise
        except Exception as e:
            path = scope.get("path", "unknown")
            if response_started:
                logger.exception("Exception after response started", error=str(e), path=path)
                raise

            status_code, payload = error_body(e)
            if status_code >= 500:
                logger.exception("Unhandled exception", error=str(e), path=path)
            else:
                logger.warning(
                    "Request rejected",
                    status_code=status_code,
                    error_type=type(e).__name__,
                    error=str(e),
                    path=path,
                )

            body = json.dumps(payload).encode("utf-8")
            await send({
                "type": "http.response.start",
                "status": status_code,
                "headers": [
                    [b"content-type", b"application/json"],
                    [b"content-length", str(len(body)).encode()],
                ],
            })
            await send({"type": "http.response.body", "body": body})

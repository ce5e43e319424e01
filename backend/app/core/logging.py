"""
Structured logging configuration with structlog.

JSON output in production, console output elsewhere. Shopify webhook
deliveries get their topic and shop domain bound to every log line of the
request, so one product's trail can be followed across mirror update and
storefront propagation.
"""
import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from app.core.config import settings

# Shopify delivery headers bound to the log context, by context key
SHOPIFY_CONTEXT_HEADERS = {
    "shopify_topic": b"x-shopify-topic",
    "shop_domain": b"x-shopify-shop-domain",
}

NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aiosqlite", "sqlalchemy.engine")


def configure_logging() -> None:
    """Configure structlog and the stdlib root logger from settings."""
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.environment == "production":
        renderer: list[Processor] = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=[*shared_processors, *renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def shopify_context(headers: dict[bytes, bytes]) -> dict[str, str]:
    """Log context taken from Shopify webhook delivery headers."""
    context = {}
    for key, header in SHOPIFY_CONTEXT_HEADERS.items():
        value = headers.get(header, b"").decode("utf-8", "replace")
        if value:
            context[key] = value
    return context


class LoggerContextMiddleware:
    """
    Reset the log context per request and bind the path, method and
    Shopify delivery headers.
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            path=scope.get("path", ""),
            method=scope.get("method", ""),
            **shopify_context(dict(scope.get("headers", []))),
        )

        await self.app(scope, receive, send)

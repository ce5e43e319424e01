"""
Middleware package.
"""
from app.core.logging import LoggerContextMiddleware
from app.middleware.error_handler import ErrorHandlerMiddleware
from app.middleware.request_id import RequestIdMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "LoggerContextMiddleware",
    "RequestIdMiddleware",
]

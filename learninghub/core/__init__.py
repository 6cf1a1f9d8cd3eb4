# Core infrastructure
from learninghub.core.context import (
    clear_context,
    get_context,
    get_request_id,
    get_user_id,
    set_request_id,
    set_user_id,
)
from learninghub.core.logging import configure_structlog, get_logger
from learninghub.core.middleware import RequestContextMiddleware, set_user_context
from learninghub.core.responses import APIError, SuccessResponse, ok


__all__ = [
    "APIError",
    "RequestContextMiddleware",
    "SuccessResponse",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_user_id",
    "ok",
    "set_request_id",
    "set_user_context",
    "set_user_id",
]

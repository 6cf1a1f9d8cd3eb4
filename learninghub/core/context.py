"""Per-request context stored in contextvars.

Values set here are picked up by the logging processors, so every log line
emitted while handling a request carries the request id and, once the caller
is authenticated, the user id.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


def get_request_id() -> str:
    """Return the id of the request being handled, or an empty string."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Bind a request id, generating one when the client sent none."""
    rid = request_id or str(uuid4())
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_trace_id() -> str | None:
    return trace_id_var.get()


def set_trace_id(trace_id: str | None) -> None:
    trace_id_var.set(trace_id)


def get_context() -> dict[str, Any]:
    """Collect the non-empty context values for log enrichment."""
    context: dict[str, Any] = {}
    if request_id := get_request_id():
        context["request_id"] = request_id
    if user_id := get_user_id():
        context["user_id"] = user_id
    if trace_id := get_trace_id():
        context["trace_id"] = trace_id
    return context


def clear_context() -> None:
    """Reset all context values at the end of a request."""
    request_id_var.set("")
    user_id_var.set(None)
    trace_id_var.set(None)

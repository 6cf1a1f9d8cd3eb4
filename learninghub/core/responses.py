"""Response envelope shared by every endpoint.

Successful calls answer ``{"success": true, "data": ..., "message": ...}``;
failures are rendered by the application's exception handlers as
``{"success": false, "message": ..., "error": <code>, "request_id": ...}``.
"""

from typing import Any, Generic, TypeVar

from fastapi import HTTPException
from pydantic import BaseModel, Field


T = TypeVar("T")


class SuccessResponse(BaseModel, Generic[T]):
    success: bool = Field(default=True)
    data: T | None = Field(default=None)
    message: str | None = Field(default=None)


class MessageResponse(BaseModel):
    """Success envelope carrying only a message."""

    success: bool = Field(default=True)
    message: str


class ErrorResponse(BaseModel):
    success: bool = Field(default=False)
    message: str
    error: str | None = Field(default=None, description="Machine-readable code")
    request_id: str | None = Field(default=None)


class APIError(HTTPException):
    """HTTPException that also carries a machine-readable error code."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: str | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code = code


def ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    """Build a success envelope."""
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body

"""
FastMemos Errors - Error codes and the exception raised across the client.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

import httpx


class ErrorCode(str, Enum):
    """Every way a FastMemos operation can fail."""
    INVALID_URL = "invalid_url"
    NOT_AUTHENTICATED = "not_authenticated"
    NETWORK_ERROR = "network_error"
    AUTH_FAILED = "auth_failed"
    SERVER_ERROR = "server_error"
    EMPTY_CONTENT = "empty_content"
    BUSY = "busy"
    UNEXPECTED_ERROR = "unexpected_error"


# User-facing text for each code
ERROR_MESSAGES = {
    ErrorCode.INVALID_URL: "Invalid server URL",
    ErrorCode.NOT_AUTHENTICATED: "Please log in first",
    ErrorCode.NETWORK_ERROR: "Network error",
    ErrorCode.AUTH_FAILED: "Invalid or expired access token",
    ErrorCode.SERVER_ERROR: "Server error",
    ErrorCode.EMPTY_CONTENT: "Memo content is empty",
    ErrorCode.BUSY: "Another request is already in progress",
    ErrorCode.UNEXPECTED_ERROR: "Unexpected error",
}


class MemosError(Exception):
    """
    An error from a FastMemos operation.

    The code identifies the kind of failure. ``message`` is the
    human-readable text shown to the user; ``status`` and ``body`` are set
    for SERVER_ERROR and ``detail`` for NETWORK_ERROR.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
        status: Optional[int] = None,
        body: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        self.code = code
        self.cause = cause
        self.status = status
        self.body = body
        self.detail = detail
        self.message = message or self._default_message()
        super().__init__(self.message)

    def _default_message(self) -> str:
        base = ERROR_MESSAGES[self.code]
        if self.code == ErrorCode.SERVER_ERROR and self.status is not None:
            text = (self.body or "").strip() or "Unknown error"
            return f"{base}: Status {self.status}: {text}"
        if self.code == ErrorCode.NETWORK_ERROR and self.detail:
            return f"{base}: {self.detail}"
        return base

    @property
    def is_auth_failure(self) -> bool:
        """True when the user must log in again."""
        return self.code in (ErrorCode.AUTH_FAILED, ErrorCode.NOT_AUTHENTICATED)

    @property
    def is_retryable(self) -> bool:
        """True when resubmitting the same request may succeed."""
        return self.code in (ErrorCode.NETWORK_ERROR, ErrorCode.SERVER_ERROR)

    def to_dict(self) -> dict:
        data = {"code": self.code.value, "message": self.message}
        if self.status is not None:
            data["status"] = self.status
        if self.body is not None:
            data["body"] = self.body
        return data

    def __repr__(self) -> str:
        return f"MemosError({self.code.name}, {self.message!r})"


def server_error(response: httpx.Response) -> MemosError:
    """Build a SERVER_ERROR from a non-2xx response."""
    return MemosError(
        ErrorCode.SERVER_ERROR,
        status=response.status_code,
        body=response.text,
    )


def handle_connection_error(error: Exception, base_url: str) -> MemosError:
    """Translate a transport-level httpx failure into a NETWORK_ERROR."""
    if isinstance(error, httpx.TimeoutException):
        detail = f"Request to {base_url} timed out"
    elif isinstance(error, httpx.ConnectError):
        detail = f"Cannot connect to {base_url}"
    else:
        detail = str(error) or error.__class__.__name__
    return MemosError(ErrorCode.NETWORK_ERROR, cause=error, detail=detail)


def unexpected_error(error: BaseException) -> MemosError:
    """Wrap an exception nothing else classified."""
    return MemosError(
        ErrorCode.UNEXPECTED_ERROR,
        message=f"Unexpected error: {error}",
        cause=error,
    )

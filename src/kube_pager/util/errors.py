from __future__ import annotations

from enum import IntEnum
from typing import Optional


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    FETCH_ERROR = 4
    RUNTIME_ERROR = 5


class PagerError(Exception):
    """Base error for the pagination engine."""


class InvalidConfiguration(PagerError, ValueError):
    """Raised for a bad page limit, fetch function, or config value."""


class FetchFailed(PagerError):
    """
    Raised when the fetch function fails for a page request.

    The message is the cause's message, so a server payload surfaces unchanged.
    """

    def __init__(self, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.cause = cause


class MalformedPageResult(PagerError):
    """Raised when a page result cannot be split into items and a continue token."""


class ApiError(PagerError):
    """Raised by the HTTP fetch function for a non-success response."""

    def __init__(self, status: int, reason: Optional[str] = None, body: str = "") -> None:
        super().__init__(body or f"HTTP {status} {reason or ''}".strip())
        self.status = status
        self.reason = reason
        self.body = body


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, InvalidConfiguration):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, (FetchFailed, ApiError)):
        return int(ExitCode.FETCH_ERROR)
    if isinstance(exc, PagerError):
        return int(ExitCode.RUNTIME_ERROR)
    return 1

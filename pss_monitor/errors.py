"""Exception types shared across the monitor."""

from __future__ import annotations

from typing import Optional

# Substrings that mark a failure as an authentication problem.
AUTH_FAILURE_SIGNALS = ("unauthorized", "401", "403", "token", "auth", "expired")


class MonitorError(Exception):
    """Base class for every error raised by the monitor."""


class NetworkError(MonitorError):
    """Raised on request timeouts and connection failures."""


class UpstreamError(MonitorError):
    """Raised when the upstream API answers with an error."""

    def __init__(self, status_code: Optional[int], body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        if status_code is None:
            super().__init__(body or "Upstream request failed")
        else:
            super().__init__(f"HTTP {status_code}: {body}")


class ParseError(MonitorError):
    """Raised when an upstream payload does not have the expected shape."""


class ValidationError(MonitorError):
    """Raised for bad input at the control boundary, before any state change."""


class NotFoundError(MonitorError):
    """Raised when a control operation names a product that is not tracked."""


def looks_like_auth_failure(error: BaseException | str) -> bool:
    message = str(error).lower()
    return any(signal in message for signal in AUTH_FAILURE_SIGNALS)


__all__ = [
    "AUTH_FAILURE_SIGNALS",
    "MonitorError",
    "NetworkError",
    "UpstreamError",
    "ParseError",
    "ValidationError",
    "NotFoundError",
    "looks_like_auth_failure",
]

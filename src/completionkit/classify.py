"""Failure classification.

Maps whatever the client (or the builder) raised to a stable category and a
message that is safe to show to the user. Remote detail is kept in the
message where the template has room for it.
"""
from __future__ import annotations

from .errors import ApiError, ValidationError
from .types import ErrorInfo

def classify_error(exc: BaseException) -> ErrorInfo:
    if isinstance(exc, ApiError):
        if exc.status == 401:
            return ErrorInfo("AuthenticationFailed", "Authentication failed. Check the API key.")
        if exc.status == 429:
            return ErrorInfo("RateLimited", "Rate limit exceeded. Retry later.")
        if exc.status == 400:
            return ErrorInfo("BadRequest", f"Bad request: {exc.message}")
        if exc.status == 500:
            return ErrorInfo("RemoteServerError", "Remote service error. Retry later.")
        return ErrorInfo("RemoteError", f"Remote API error: {exc.message}")

    if isinstance(exc, ValidationError):
        return ErrorInfo("ValidationError", str(exc))

    return ErrorInfo("LocalError", str(exc) or type(exc).__name__)

"""Exception taxonomy.

ValidationError is raised before dispatch, ClientError subclasses come out of
the completion client, BatchError subclasses end a batch early.
"""
from __future__ import annotations

from typing import Any, List, Optional


class CompletionKitError(Exception):
    pass


class ConfigError(CompletionKitError):
    pass


class ValidationError(CompletionKitError):
    pass


class ClientError(CompletionKitError):
    pass


class ApiError(ClientError):
    """Non-2xx answer from the completion endpoint."""

    def __init__(self, status: int, message: str):
        super().__init__(f"http {status}: {message}")
        self.status = status
        self.message = message


class TransportError(ClientError):
    """The request never produced an HTTP status (connection, timeout, bad JSON)."""


class BatchError(CompletionKitError):
    def __init__(self, message: str, results: Optional[List[Any]] = None):
        super().__init__(message)
        self.results = list(results or [])


class BatchAborted(BatchError):
    """Fail-fast stop. `results` holds only the records finished before `index`."""

    def __init__(self, index: int, info: Any, results: List[Any], cause: Optional[BaseException] = None):
        super().__init__(f"[record {index}] {info.category}: {info.message}", results)
        self.index = index
        self.info = info
        self.cause = cause


class BatchCancelled(BatchError):
    pass

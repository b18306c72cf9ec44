"""Error taxonomy shared by the authority client, poller, store and engine."""
from __future__ import annotations

from typing import Any

__all__ = [
    "SSLServiceError",
    "ValidationError",
    "NotFound",
    "AuthorityError",
    "PollExhausted",
    "StoreError",
]


class SSLServiceError(RuntimeError):
    """Base class for every failure raised by the hostname SSL services."""


class ValidationError(SSLServiceError):
    """Required input is missing or malformed; correctable by the caller."""


class NotFound(SSLServiceError):
    """No record matches the requested hostname."""

    def __init__(self, message: str, *, hostname: str | None = None):
        super().__init__(message)
        self.hostname = hostname


class AuthorityError(SSLServiceError):
    """Raised when the certificate authority returns a non-success response.

    ``status_code`` is ``0`` when the request never produced a response
    (DNS failure, refused connection, timeout).
    """

    def __init__(self, message: str, *, status_code: int, body: Any | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class PollExhausted(SSLServiceError):
    """Every status poll attempt failed; ``last_error`` is the final failure."""

    def __init__(self, record_id: str, attempts: int, last_error: BaseException | None):
        super().__init__(f"status poll for {record_id} failed after {attempts} attempt(s): {last_error}")
        self.record_id = record_id
        self.attempts = attempts
        self.last_error = last_error

    @property
    def body(self) -> Any | None:
        if isinstance(self.last_error, AuthorityError):
            return self.last_error.body
        return str(self.last_error) if self.last_error is not None else None


class StoreError(SSLServiceError):
    """The local record store is unavailable or corrupt."""

"""Error taxonomy for riakcs-client.

Two families:
- Construction and catalog errors (ConfigurationError, ProgrammerError) are
  raised loudly and never routed through a callback.
- Per-call errors (CallError subclasses) describe one failed execute() and can
  be converted to an ErrorResult for callback-style callers.
"""

from __future__ import annotations

from typing import Any

from riakcs_client.models import ErrorResult


class RiakCSError(Exception):
    """Base class for riakcs-client errors."""


class ConfigurationError(RiakCSError):
    """Raised when client configuration is missing or invalid."""


class ProgrammerError(RiakCSError):
    """Raised when an operation catalog entry is malformed.

    Indicates a bug in the catalog or an extras hook, not a bad call.
    """


class CallError(RiakCSError):
    """Base class for errors reported for a single execute() call."""

    code = "CallError"

    def __init__(
        self,
        message: str,
        *,
        body: Any = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.body = body
        self.original_error = original_error

    def to_error_result(self) -> ErrorResult:
        return ErrorResult(
            code=self.code,
            message=self.message,
            body=self.body,
            original_error=self.original_error,
        )


class ValidationError(CallError):
    """Raised when a required call argument is absent. No request is sent."""

    code = "ValidationError"


class TransportError(CallError):
    """Raised when the HTTP round trip fails (DNS, refused, timeout, cancelled)."""

    code = "TransportError"


class ParseError(CallError):
    """Raised when a response body cannot be parsed. Carries the raw body."""

    code = "ParseError"


class StatusMismatchError(CallError):
    """Raised when the response status is not one the operation expects."""

    code = "StatusMismatchError"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        headers: dict[str, str] | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message, body=body)
        self.status_code = status_code
        self.headers = headers

    def to_error_result(self) -> ErrorResult:
        return ErrorResult(
            code=self.code,
            message=self.message,
            status_code=self.status_code,
            headers=self.headers,
            body=self.body,
        )

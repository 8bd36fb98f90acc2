"""Exceptions for scene-fetch."""

from typing import Any

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class SceneFetchError(Exception):
    """
    Base exception for all scene-fetch errors.

    All exceptions raised or delivered to ``on_error`` callbacks by this
    library inherit from this class, allowing callers to handle every
    library-specific failure with a single except clause.
    """

    pass


# ---------------------------------------------------------------------------
# Category Exceptions
# ---------------------------------------------------------------------------


class ConfigurationError(SceneFetchError):
    """
    Base exception for configuration errors.

    These are programmer errors: invalid settings or setter values. They are
    raised synchronously at the point of assignment.
    """

    pass


class RequestError(SceneFetchError):
    """
    Base exception for errors of a single remote request.

    These are always delivered to the ``on_error`` callback of the caller
    that issued (or waits on) the request, never raised into the event loop.
    """

    pass


# ---------------------------------------------------------------------------
# Configuration Exceptions
# ---------------------------------------------------------------------------


class ValidationError(ConfigurationError, ValueError):
    """
    Raised when a configuration value or an argument fails validation.

    Attributes:
        field: Name of the invalid field
        value: The rejected value
        reason: Human-readable explanation
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


# ---------------------------------------------------------------------------
# Request Exceptions
# ---------------------------------------------------------------------------


class TransportError(RequestError):
    """
    Raised when the transport fails before a response is received.

    Covers network errors, aborts and timeouts.

    Attributes:
        cause: The underlying exception, if any
        method: HTTP verb of the failed request
        url: Target of the failed request
    """

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        *,
        method: str | None = None,
        url: str | None = None,
    ) -> None:
        self.cause = cause
        self.method = method
        self.url = url
        super().__init__(self._format_message(message))

    def _format_message(self, message: str) -> str:
        if self.method and self.url:
            return f"{message} [{self.method} {self.url}]"
        if self.url:
            return f"{message} [{self.url}]"
        return message


class ResponseError(RequestError):
    """
    Raised when the server answers with an enumerated non-success status.

    Attributes:
        status: Numeric status code
        body: Raw response body
        url: Target of the request
    """

    def __init__(self, status: int, body: Any = None, url: str | None = None) -> None:
        self.status = status
        self.body = body
        self.url = url
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"Request failed with status {self.status}"
        if self.url:
            msg += f" [{self.url}]"
        return msg


class UnknownStatusError(ResponseError):
    """Raised when the status code is not part of the known status table."""

    def _format_message(self) -> str:
        msg = f"Unknown response status {self.status}"
        if self.url:
            msg += f" [{self.url}]"
        return msg


class ResponseParseError(RequestError):
    """
    Raised when a successful response body cannot be decoded.

    Attributes:
        response_type: The declared response type
        cause: The underlying decoding exception
    """

    def __init__(self, response_type: str, cause: Exception | None = None) -> None:
        self.response_type = response_type
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Unable to parse {response_type!r} response{detail}")


class DemandCancelledError(SceneFetchError):
    """
    Delivered to callers whose outstanding work was abandoned.

    Closing a manager fails every waiting read and every queued or in-flight
    request with this error.
    """

    pass

"""Classification and post-processing of completed transport calls."""

import json
import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from .exceptions import (
    RequestError,
    ResponseError,
    ResponseParseError,
    TransportError,
    UnknownStatusError,
)
from .models import HttpStatusCode, RequestDescriptor, ResponseType
from .transport import TransportResponse


class StatusFamily(Enum):
    """Outcome of a status code classification."""

    SUCCESS = "success"
    ERROR = "error"
    UNKNOWN = "unknown"


def classify_status(status: int) -> StatusFamily:
    """
    Classify a status code.

    ``200 OK`` is the only success. Every other code of the status table is
    an error; codes missing from the table are unknown.
    """
    if status == HttpStatusCode.OK:
        return StatusFamily.SUCCESS
    if HttpStatusCode.is_known(status):
        return StatusFamily.ERROR
    return StatusFamily.UNKNOWN


def decode_body(body: bytes, response_type: ResponseType) -> Any:
    """
    Decode a raw body according to the declared response type.

    Returns:
        Parsed JSON for JSON, bytes for array buffers and blobs, str for text.
        An empty body decodes to None.

    Raises:
        ResponseParseError: If the body cannot be decoded
    """
    if not body:
        return None
    try:
        if response_type is ResponseType.JSON:
            return json.loads(body)
        if response_type in (ResponseType.ARRAY_BUFFER, ResponseType.BLOB):
            return bytes(body)
        return body.decode("utf-8") if isinstance(body, bytes) else str(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ResponseParseError(response_type.value, e) from e


class ResponseRouter:
    """
    Routes completed transport calls to the right consumer.

    Classification by status family, then parsing by declared response type
    through the type hooks, then post-processing by operation kind:

    - READ_ONE / READ_MANY: ``on_resolved(ids, data)`` updates the cache and
      reconciles waiting demands; the descriptor callbacks are not used.
    - READ_WHERE / READ_ALL: the descriptor's ``on_load`` gets the data.
    - CREATE / UPDATE / DELETE: the descriptor's ``on_load`` gets the data.

    Errors of cached reads go to ``on_failed(ids, error)``, all others to the
    descriptor's ``on_error``.

    Args:
        hooks: Parser hook per response type, applied to the decoded body
        on_resolved: Receives the ids and parsed data of a cached read
        on_failed: Receives the ids and error of a failed cached read
        logger: Logger for routing errors
    """

    def __init__(
        self,
        hooks: Mapping[ResponseType, Callable[[Any], Any]],
        on_resolved: Callable[[tuple[str, ...], Any], None],
        on_failed: Callable[[tuple[str, ...], RequestError], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._hooks = dict(hooks)
        self._on_resolved = on_resolved
        self._on_failed = on_failed
        self.logger = logger or logging.getLogger(__name__)

    def handle_response(self, descriptor: RequestDescriptor, response: TransportResponse) -> None:
        """Completion handler for transport calls that produced a response."""
        family = classify_status(response.status)

        if family is StatusFamily.UNKNOWN:
            self.logger.error(
                "Unknown status %d for %s %s",
                response.status,
                descriptor.verb.value,
                descriptor.path,
            )
            error = UnknownStatusError(response.status, response.body, descriptor.path)
            self._fail(descriptor, error)
            return

        if family is StatusFamily.ERROR:
            self.logger.warning(
                "Request %s %s failed with status %d",
                descriptor.verb.value,
                descriptor.path,
                response.status,
            )
            self._fail(descriptor, ResponseError(response.status, response.body, descriptor.path))
            return

        try:
            data = self.parse(response.body, descriptor.response_type)
        except ResponseParseError as e:
            self.logger.error("Unable to parse response of %s: %s", descriptor.path, e)
            self._fail(descriptor, e)
            return

        if descriptor.operation.is_cached:
            self._on_resolved(descriptor.ids, data)
        else:
            descriptor.on_load(data)

    def handle_error(self, descriptor: RequestDescriptor, error: TransportError) -> None:
        """Completion handler for transport level failures."""
        self.logger.warning("Transport failure for %s: %s", descriptor.path, error)
        self._fail(descriptor, error)

    def parse(self, body: bytes, response_type: ResponseType) -> Any:
        """Decode a body and apply the hook registered for its type."""
        decoded = decode_body(body, response_type)
        hook = self._hooks.get(response_type)
        if hook is None:
            return decoded
        try:
            return hook(decoded)
        except (KeyError, TypeError, ValueError) as e:
            raise ResponseParseError(response_type.value, e) from e

    def _fail(self, descriptor: RequestDescriptor, error: RequestError) -> None:
        if descriptor.operation.is_cached:
            self._on_failed(descriptor.ids, error)
        else:
            descriptor.on_error(error)

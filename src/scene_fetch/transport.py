"""Transport protocol for scene-fetch.

This module defines the contract every transport (HTTP client, test double)
must satisfy. The protocol uses Python's typing.Protocol with
@runtime_checkable, enabling duck typing and isinstance() checks at runtime.

A transport turns a TransportRequest into a TransportResponse. It reports
download progress through the ``on_progress`` callback and raises
TransportError for network level failures (abort, error, timeout). It never
interprets the status code: classification is the router's job.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from .models import ProgressEvent, RequestDescriptor, ResponseType


@dataclass(frozen=True)
class TransportRequest:
    """A request as seen by the transport."""

    method: str
    url: str
    body: bytes | str | None = None
    response_type: ResponseType = ResponseType.JSON
    headers: dict[str, str] = field(default_factory=lambda: {"Content-Type": "application/json"})


@dataclass(frozen=True)
class TransportResponse:
    """A completed transport call."""

    status: int
    body: bytes = b""
    content_type: str | None = None


@runtime_checkable
class TransportProtocol(Protocol):
    """
    Protocol for transports.

    Example:
        class EchoTransport:
            async def send(self, request, on_progress=None):
                return TransportResponse(200, request.body or b"")

            async def close(self):
                pass

        assert isinstance(EchoTransport(), TransportProtocol)  # True at runtime
    """

    async def send(
        self,
        request: TransportRequest,
        on_progress: Callable[[ProgressEvent], None] | None = None,
    ) -> TransportResponse:
        """
        Send a request and wait for the full response.

        Args:
            request: Request to send
            on_progress: Called with a ProgressEvent as the body arrives

        Returns:
            TransportResponse with status code and raw body

        Raises:
            TransportError: On network error, abort or timeout
        """
        ...

    async def close(self) -> None:
        """Release connections held by the transport."""
        ...


def encode_body(payload: Any, response_type: ResponseType) -> bytes | str | None:
    """
    Encode a payload for sending.

    Payloads are JSON encoded when the declared response type is JSON and
    sent raw otherwise.
    """
    if payload is None:
        return None
    if response_type is ResponseType.JSON:
        return json.dumps(payload)
    return payload


def build_request(descriptor: RequestDescriptor) -> TransportRequest:
    """Translate a RequestDescriptor into a TransportRequest."""
    return TransportRequest(
        method=descriptor.verb.value,
        url=descriptor.path,
        body=encode_body(descriptor.payload, descriptor.response_type),
        response_type=descriptor.response_type,
    )

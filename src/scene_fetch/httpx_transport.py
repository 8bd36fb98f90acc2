"""HTTP transport backed by httpx."""

from typing import Any

import httpx

from .config import DEFAULT_TIMEOUT_SECONDS, validate_path
from .exceptions import TransportError
from .models import OnProgress, ProgressEvent
from .transport import TransportRequest, TransportResponse


class HttpxTransport:
    """
    Sends TransportRequests with an ``httpx.AsyncClient``.

    Response bodies are streamed so that a ProgressEvent can be emitted per
    received chunk. The total is taken from ``Content-Length`` when the
    server sends one.

    Args:
        base_url: Root URL prepended to request paths
        timeout: Timeout in seconds for connect, read and write
        client: Existing client to use instead of creating one (not closed
            by ``close()``)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = validate_path("base_url", base_url)
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def send(
        self, request: TransportRequest, on_progress: OnProgress | None = None
    ) -> TransportResponse:
        """
        Send a request and collect its body.

        Raises:
            TransportError: On timeouts and connection failures
        """
        client = self._get_client()
        try:
            async with client.stream(
                request.method,
                request.url,
                content=request.body,
                headers=request.headers,
            ) as response:
                total = _content_length(response)
                chunks: list[bytes] = []
                loaded = 0
                async for chunk in response.aiter_bytes():
                    chunks.append(chunk)
                    loaded += len(chunk)
                    if on_progress is not None:
                        on_progress(ProgressEvent(loaded=loaded, total=total))

                return TransportResponse(
                    status=response.status_code,
                    body=b"".join(chunks),
                    content_type=response.headers.get("content-type"),
                )
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Timed out after {self.timeout}s", cause=e, method=request.method, url=request.url
            ) from e
        except httpx.TransportError as e:
            raise TransportError(
                str(e) or type(e).__name__, cause=e, method=request.method, url=request.url
            ) from e


def _content_length(response: httpx.Response) -> int | None:
    value = response.headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None

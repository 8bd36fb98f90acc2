"""In-memory transports for driving the engine without a network."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

from scene_fetch.models import OnProgress, ProgressEvent
from scene_fetch.transport import TransportRequest, TransportResponse

Handler = Callable[[TransportRequest], "TransportResponse | Exception"]


def json_response(data: Any, status: int = 200) -> TransportResponse:
    """Build a JSON TransportResponse."""
    return TransportResponse(
        status=status,
        body=json.dumps(data).encode(),
        content_type="application/json",
    )


def make_documents(count: int, prefix: str = "id") -> dict[str, dict[str, Any]]:
    """Documents ``{prefix0: {"_id": prefix0, "n": 0}, ...}``."""
    return {f"{prefix}{n}": {"_id": f"{prefix}{n}", "n": n} for n in range(count)}


def document_server(documents: dict[str, Any]) -> Handler:
    """
    Handler answering like the data server.

    Batch reads (``{"ids": [...]}``) return the known documents as a list,
    other reads return every document, writes echo ``{"ok": true}``.
    """

    def handler(request: TransportRequest) -> TransportResponse:
        payload = json.loads(request.body) if request.body else None
        if request.method == "POST" and isinstance(payload, dict) and "ids" in payload:
            return json_response([documents[key] for key in payload["ids"] if key in documents])
        if request.method == "POST":
            return json_response(list(documents.values()))
        return json_response({"ok": True})

    return handler


class FakeTransport:
    """
    Scripted transport recording every request.

    Each call is answered by ``handler``. When ``gate`` is set, calls block
    until the event is set, which lets tests observe in-flight counts.
    Returning an exception from the handler raises it from ``send``.
    """

    def __init__(self, handler: Handler | None = None, gated: bool = False) -> None:
        self.handler: Handler = handler or (lambda request: json_response(None))
        self.gate: asyncio.Event | None = asyncio.Event() if gated else None
        self.requests: list[TransportRequest] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.closed = False

    async def send(
        self, request: TransportRequest, on_progress: OnProgress | None = None
    ) -> TransportResponse:
        self.requests.append(request)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)

            result = self.handler(request)
            if isinstance(result, Exception):
                raise result
            if on_progress is not None and result.body:
                size = len(result.body)
                on_progress(ProgressEvent(loaded=size // 2, total=size))
                on_progress(ProgressEvent(loaded=size, total=size))
            return result
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True

    def release(self) -> None:
        """Let gated calls complete."""
        if self.gate is not None:
            self.gate.set()

    def payloads(self) -> list[Any]:
        """Decoded JSON bodies of the recorded requests."""
        return [json.loads(r.body) if r.body else None for r in self.requests]

    def batches(self) -> list[list[str]]:
        """Id lists of the recorded batch reads."""
        return [p["ids"] for p in self.payloads() if isinstance(p, dict) and "ids" in p]

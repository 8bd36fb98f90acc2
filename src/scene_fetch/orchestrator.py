"""Duplicate-request coalescing for raw transport access.

Requests that are not keyed by an entity identity (file downloads, raw
queries) go through a RequestCoalescer. Identical (method, url, data)
requests that are queued or in flight are merged: the later caller is
attached to the existing request and nothing new is sent.

The coalescer is an ordinary object. Share one instance by passing it to
every component that should deduplicate against the same tables.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from .config import validate_positive_int
from .exceptions import TransportError, ValidationError
from .models import OnError, OnLoad, OnProgress, ProgressEvent, QueueDiscipline, ResponseType
from .transport import TransportProtocol, TransportRequest, TransportResponse, encode_body

DEFAULT_MIN_SIMULTANEOUS = 3
DEFAULT_MAX_SIMULTANEOUS = 6


def _noop(*args: Any) -> None:
    pass


@dataclass(eq=False)
class RawRequest:
    """A request managed by the coalescer, with its (possibly merged) callbacks."""

    method: str
    url: str
    data: Any = None
    response_type: ResponseType = ResponseType.JSON
    on_load: OnLoad = _noop
    on_progress: OnProgress = _noop
    on_error: OnError = _noop
    subscribers: int = field(default=1)

    def same_as(self, method: str, url: str, data: Any) -> bool:
        """True if this request has the same method, url and data."""
        return self.method == method and self.url == url and self.data == data

    def merge(self, other: "RawRequest") -> None:
        """Chain the callbacks of ``other`` after this request's callbacks."""
        first_load, first_progress, first_error = self.on_load, self.on_progress, self.on_error

        def on_load(response: Any) -> None:
            first_load(response)
            other.on_load(response)

        def on_progress(event: ProgressEvent) -> None:
            first_progress(event)
            other.on_progress(event)

        def on_error(error: Exception) -> None:
            first_error(error)
            other.on_error(error)

        self.on_load, self.on_progress, self.on_error = on_load, on_progress, on_error
        self.subscribers += other.subscribers


class RequestCoalescer:
    """
    Deduplicating request queue with low/high water marks.

    A new request is merged into an identical queued or in-flight request
    when there is one. Otherwise it is queued, and if the number of running
    requests is at or below ``min_simultaneous`` the queue is drained until
    ``max_simultaneous`` requests run. Completions refill the same way.

    Callbacks receive the raw TransportResponse; status codes are not
    interpreted here.

    Args:
        transport: Transport used to send requests
        min_simultaneous: Low-water mark triggering a refill
        max_simultaneous: High-water mark of running requests
        discipline: Order in which queued requests are started
        logger: Logger for coalescing events
    """

    def __init__(
        self,
        transport: TransportProtocol,
        min_simultaneous: int = DEFAULT_MIN_SIMULTANEOUS,
        max_simultaneous: int = DEFAULT_MAX_SIMULTANEOUS,
        discipline: QueueDiscipline = QueueDiscipline.FIFO,
        logger: logging.Logger | None = None,
    ) -> None:
        self.transport = transport
        self._min_simultaneous = validate_positive_int("min_simultaneous", min_simultaneous)
        self._max_simultaneous = validate_positive_int("max_simultaneous", max_simultaneous)
        if self._min_simultaneous > self._max_simultaneous:
            raise ValidationError(
                "min_simultaneous", min_simultaneous, "Cannot be higher than max_simultaneous"
            )
        self.discipline = discipline
        self.logger = logger or logging.getLogger(__name__)

        self.request_queue: deque[RawRequest] = deque()
        self.process_queue: list[RawRequest] = []
        self._tasks: set[asyncio.Task[None]] = set()

    # -------------------------------------------------------------------------
    # Water marks
    # -------------------------------------------------------------------------

    @property
    def min_simultaneous(self) -> int:
        return self._min_simultaneous

    @min_simultaneous.setter
    def min_simultaneous(self, value: int) -> None:
        validate_positive_int("min_simultaneous", value)
        if value > self._max_simultaneous:
            raise ValidationError(
                "min_simultaneous", value, "Cannot be higher than max_simultaneous"
            )
        self._min_simultaneous = value

    @property
    def max_simultaneous(self) -> int:
        return self._max_simultaneous

    @max_simultaneous.setter
    def max_simultaneous(self, value: int) -> None:
        validate_positive_int("max_simultaneous", value)
        if value < self._min_simultaneous:
            raise ValidationError(
                "max_simultaneous", value, "Cannot be lower than min_simultaneous"
            )
        self._max_simultaneous = value

    @property
    def running(self) -> int:
        """Number of requests in flight."""
        return len(self.process_queue)

    @property
    def idle(self) -> bool:
        return not self.request_queue and not self.process_queue

    # -------------------------------------------------------------------------
    # Queueing
    # -------------------------------------------------------------------------

    def queue(
        self,
        method: str,
        url: str,
        data: Any = None,
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
        response_type: ResponseType = ResponseType.JSON,
    ) -> RawRequest:
        """
        Queue a request, merging it into an identical one if possible.

        Returns:
            The request that will actually be sent (an existing one when merged)
        """
        new_request = RawRequest(
            method=method,
            url=url,
            data=data,
            response_type=response_type,
            on_load=on_load or _noop,
            on_progress=on_progress or _noop,
            on_error=on_error or _noop,
        )

        existing = self._find(method, url, data)
        if existing is not None:
            existing.merge(new_request)
            self.logger.debug(
                "Coalesced %s %s (%d subscribers)", method, url, existing.subscribers
            )
            return existing

        self.request_queue.append(new_request)
        if self.running <= self._min_simultaneous:
            self.drain()
        return new_request

    async def request(
        self,
        method: str,
        url: str,
        data: Any = None,
        on_progress: OnProgress | None = None,
        response_type: ResponseType = ResponseType.JSON,
    ) -> TransportResponse:
        """
        Awaitable form of ``queue``.

        Raises:
            TransportError: If the transport fails
        """
        future: asyncio.Future[TransportResponse] = asyncio.get_running_loop().create_future()

        def on_load(response: TransportResponse) -> None:
            if not future.done():
                future.set_result(response)

        def on_error(error: Exception) -> None:
            if not future.done():
                future.set_exception(error)

        self.queue(method, url, data, on_load, on_progress, on_error, response_type)
        return await future

    def drain(self) -> None:
        """Start queued requests until the high-water mark is reached."""
        loop = asyncio.get_running_loop()
        while self.request_queue and self.running < self._max_simultaneous:
            if self.discipline is QueueDiscipline.LIFO:
                raw = self.request_queue.pop()
            else:
                raw = self.request_queue.popleft()
            self.process_queue.append(raw)
            task = loop.create_task(self._run(raw))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def join(self) -> None:
        """Wait until nothing is queued or running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _find(self, method: str, url: str, data: Any) -> RawRequest | None:
        for raw in (*self.request_queue, *self.process_queue):
            if raw.same_as(method, url, data):
                return raw
        return None

    async def _run(self, raw: RawRequest) -> None:
        request = TransportRequest(
            method=raw.method,
            url=raw.url,
            body=encode_body(raw.data, raw.response_type),
            response_type=raw.response_type,
        )
        response: TransportResponse | None = None
        error: TransportError | None = None

        try:
            # Late-merged callers must see progress too, so resolve at call time
            response = await self.transport.send(request, lambda event: raw.on_progress(event))
        except TransportError as e:
            error = e
        except Exception as e:
            error = TransportError(
                str(e) or type(e).__name__, cause=e, method=raw.method, url=raw.url
            )
        finally:
            if raw in self.process_queue:
                self.process_queue.remove(raw)

        try:
            if error is not None:
                raw.on_error(error)
            else:
                raw.on_load(response)
        except Exception:
            self.logger.exception("Callback failed for %s %s", raw.method, raw.url)
        finally:
            if self.running <= self._min_simultaneous:
                self.drain()

"""Bounded-concurrency dispatch of request descriptors."""

import asyncio
import logging
from collections import deque
from collections.abc import Callable

from .exceptions import TransportError
from .models import QueueDiscipline, RequestDescriptor
from .transport import TransportProtocol, TransportResponse, build_request

DEFAULT_CONCURRENCY = 6


class Dispatcher:
    """
    Issues at most ``concurrency`` transport calls at a time.

    Descriptors wait in the request queue until a slot of the process queue
    frees up. Each promoted descriptor is sent on its own asyncio task; when
    the call completes (success or transport error) the descriptor leaves the
    process queue, the completion handler runs, and the queue is pumped again.

    Progress events go straight to the descriptor's ``on_progress``. Status
    classification is left to the completion handlers.

    Args:
        transport: Transport used to send requests
        on_response: Called with the descriptor and its TransportResponse
        on_error: Called with the descriptor and its TransportError
        concurrency: Maximum number of simultaneous transport calls
        discipline: Order in which queued descriptors are promoted
        logger: Logger for dispatch events
        on_idle: Called when a completion leaves nothing queued or in flight
    """

    def __init__(
        self,
        transport: TransportProtocol,
        on_response: Callable[[RequestDescriptor, TransportResponse], None],
        on_error: Callable[[RequestDescriptor, TransportError], None],
        concurrency: int = DEFAULT_CONCURRENCY,
        discipline: QueueDiscipline = QueueDiscipline.FIFO,
        logger: logging.Logger | None = None,
        on_idle: Callable[[], None] | None = None,
    ) -> None:
        self.transport = transport
        self._on_response = on_response
        self._on_error = on_error
        self._on_idle = on_idle
        self.concurrency = concurrency
        self.discipline = discipline
        self.logger = logger or logging.getLogger(__name__)

        self.request_queue: deque[RequestDescriptor] = deque()
        self.process_queue: list[RequestDescriptor] = []
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._peak_in_flight = 0

    @property
    def in_flight(self) -> int:
        """Number of transport calls currently running."""
        return len(self.process_queue)

    @property
    def peak_in_flight(self) -> int:
        """Highest number of simultaneous transport calls observed."""
        return self._peak_in_flight

    @property
    def idle(self) -> bool:
        """True when nothing is queued or in flight."""
        return not self.request_queue and not self.process_queue

    def submit(self, descriptor: RequestDescriptor, pump: bool = True) -> None:
        """
        Queue a descriptor.

        Args:
            descriptor: Work to send
            pump: Start sending immediately if a slot is free
        """
        self.request_queue.append(descriptor)
        if pump:
            self.pump()

    def pump(self) -> None:
        """Promote queued descriptors while slots are free."""
        loop = asyncio.get_running_loop()

        while self.request_queue and len(self.process_queue) < self.concurrency:
            if self.discipline is QueueDiscipline.LIFO:
                descriptor = self.request_queue.pop()
            else:
                descriptor = self.request_queue.popleft()

            self.process_queue.append(descriptor)
            self._peak_in_flight = max(self._peak_in_flight, len(self.process_queue))
            self.logger.debug(
                "Dispatching %s %s (%s) [%d/%d in flight]",
                descriptor.verb.value,
                descriptor.path,
                descriptor.operation.value,
                len(self.process_queue),
                self.concurrency,
            )
            self._tasks[descriptor.id] = loop.create_task(self._run(descriptor))

    def cancel(self, descriptor: RequestDescriptor) -> bool:
        """
        Retract a descriptor.

        A queued descriptor is dropped; an in-flight one has its task
        cancelled. No callback of the descriptor fires afterwards.

        Returns:
            True if the descriptor was queued or in flight
        """
        if descriptor in self.request_queue:
            self.request_queue.remove(descriptor)
            return True
        task = self._tasks.get(descriptor.id)
        if task is None or task.done():
            return False
        task.cancel()
        self._release(descriptor)
        self.pump()
        return True

    async def join(self) -> None:
        """Wait until the request and process queues are both empty."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def _run(self, descriptor: RequestDescriptor) -> None:
        request = build_request(descriptor)
        response = None
        error: TransportError | None = None

        try:
            response = await self.transport.send(request, descriptor.on_progress)
        except asyncio.CancelledError:
            self.logger.debug("Cancelled %s %s", request.method, request.url)
            self._release(descriptor)
            raise
        except TransportError as e:
            error = e
        except Exception as e:
            error = TransportError(
                str(e) or type(e).__name__, cause=e, method=request.method, url=request.url
            )

        self._release(descriptor)

        try:
            if error is not None:
                self.logger.debug(
                    "Transport error for %s %s: %s", request.method, request.url, error
                )
                self._on_error(descriptor, error)
            else:
                self._on_response(descriptor, response)
        except Exception:
            self.logger.exception(
                "Completion handler failed for %s %s", request.method, request.url
            )
        finally:
            self.pump()
            if self._on_idle is not None and self.idle:
                self._notify_idle()

    def _notify_idle(self) -> None:
        try:
            self._on_idle()  # type: ignore[misc]
        except Exception:
            self.logger.exception("Idle handler failed")

    def _release(self, descriptor: RequestDescriptor) -> None:
        if descriptor in self.process_queue:
            self.process_queue.remove(descriptor)
        self._tasks.pop(descriptor.id, None)

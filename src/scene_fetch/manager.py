"""Entity manager: the CRUD façade over cache, aggregation and dispatch."""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from .aggregator import DEFAULT_AGGREGATION_WINDOW_MS, DEFAULT_BUNCH_SIZE, Aggregator
from .cache import CacheStats, EntityCache
from .config import (
    FetchSettings,
    validate_non_negative,
    validate_path,
    validate_positive_int,
    validate_response_type,
)
from .dispatcher import DEFAULT_CONCURRENCY, Dispatcher
from .exceptions import DemandCancelledError, RequestError, ResponseParseError, ValidationError
from .models import (
    OnError,
    OnLoad,
    OnProgress,
    Operation,
    ProgressEvent,
    QueueDiscipline,
    RequestDescriptor,
    ResponseType,
    Ticket,
    WaitingDemand,
)
from .progress import ProgressTracker
from .router import ResponseRouter
from .transport import TransportProtocol
from .waiting import WaitingRegistry

Query = Mapping[str, Any]


def normalize_documents(data: Any) -> dict[str, Any]:
    """
    Turn a batch read response into an ``{id: document}`` mapping.

    Accepted shapes are a list of documents carrying ``_id`` (or ``id``), a
    single such document, or a mapping already keyed by id. None (an empty
    body) yields an empty mapping.

    >>> normalize_documents([{"_id": "a", "n": 1}])
    {'a': {'_id': 'a', 'n': 1}}

    Raises:
        TypeError: If the data has none of these shapes
    """
    if data is None:
        return {}
    if isinstance(data, Mapping):
        if _document_id(data) is not None:
            return {_document_id(data): data}  # type: ignore[dict-item]
        return {str(key): value for key, value in data.items()}
    if isinstance(data, list):
        documents: dict[str, Any] = {}
        for document in data:
            key = _document_id(document) if isinstance(document, Mapping) else None
            if key is None:
                raise TypeError(f"Document without an id: {document!r}")
            documents[key] = document
        return documents
    raise TypeError(f"Expected a list or mapping of documents, got {type(data).__name__}")


def _document_id(document: Mapping[str, Any]) -> str | None:
    for field in ("_id", "id"):
        value = document.get(field)
        if isinstance(value, str | int) and not isinstance(value, bool):
            return str(value)
    return None


class EntityManager:
    """
    CRUD access to one entity type of the data server.

    Reads by id go through a tri-state cache: resolved keys are answered
    from memory, keys already being fetched are awaited, and missing keys
    are buffered by the aggregator and fetched in batches of at most
    ``bunch_size`` ids. Every other operation is sent as-is. All transport
    calls share a dispatcher limited to ``concurrency`` simultaneous calls.

    Every operation takes optional ``on_load``, ``on_progress`` and
    ``on_error`` callbacks and returns a Ticket whose ``cancel()`` retracts
    the caller's interest. Awaitable forms (``fetch``, ``create_async``,
    ...) are provided for asyncio code.

    Must be used from a running event loop.

    Example:
        manager = EntityManager(transport, "/objects")
        objects = await manager.fetch(["a", "b"])

    Args:
        transport: Transport used to send requests
        base_path: Resource path of the entity type (e.g. "/objects")
        response_type: Declared response type of requests
        bunch_size: Maximum ids per batch read
        aggregation_window_ms: Debounce window for batching reads
        concurrency: Maximum simultaneous transport calls
        discipline: Promotion order of queued requests
        logger: Logger of the manager and all its components
        progress_tracker: Observer of download progress

    Raises:
        ValidationError: If an argument is invalid
    """

    default_base_path: str | None = None

    def __init__(
        self,
        transport: TransportProtocol,
        base_path: str | None = None,
        *,
        response_type: ResponseType | str = ResponseType.JSON,
        bunch_size: int = DEFAULT_BUNCH_SIZE,
        aggregation_window_ms: float = DEFAULT_AGGREGATION_WINDOW_MS,
        concurrency: int = DEFAULT_CONCURRENCY,
        discipline: QueueDiscipline = QueueDiscipline.FIFO,
        logger: logging.Logger | None = None,
        progress_tracker: ProgressTracker | None = None,
    ) -> None:
        self.transport = transport
        self._base_path = validate_path("base_path", base_path or self.default_base_path)
        self._response_type = validate_response_type("response_type", response_type)
        validate_positive_int("bunch_size", bunch_size)
        validate_non_negative("aggregation_window_ms", aggregation_window_ms)
        validate_positive_int("concurrency", concurrency)
        try:
            discipline = QueueDiscipline(discipline)
        except ValueError:
            raise ValidationError("discipline", discipline, "Expected 'fifo' or 'lifo'") from None

        self._logger = logger or logging.getLogger(__name__)
        self.progress_tracker = progress_tracker

        self._cache = EntityCache(self._logger)
        self.waiting = WaitingRegistry(self._cache, self._logger)
        self.router = ResponseRouter(
            hooks={
                ResponseType.JSON: self.on_json,
                ResponseType.ARRAY_BUFFER: self.on_array_buffer,
                ResponseType.BLOB: self.on_blob,
                ResponseType.TEXT: self.on_text,
                ResponseType.DEFAULT: self.on_text,
            },
            on_resolved=self._on_resolved,
            on_failed=self._on_failed,
            logger=self._logger,
        )
        self.dispatcher = Dispatcher(
            transport,
            on_response=self.router.handle_response,
            on_error=self.router.handle_error,
            concurrency=concurrency,
            discipline=discipline,
            logger=self._logger,
            on_idle=self._on_idle,
        )
        self.aggregator = Aggregator(
            on_bunch=self._queue_bunch,
            on_flushed=self.dispatcher.pump,
            bunch_size=bunch_size,
            window_ms=aggregation_window_ms,
            logger=self._logger,
        )

    @classmethod
    def from_settings(
        cls,
        transport: TransportProtocol,
        settings: FetchSettings,
        base_path: str | None = None,
        **kwargs: Any,
    ) -> "EntityManager":
        """Build a manager configured by FetchSettings."""
        options: dict[str, Any] = {
            "response_type": settings.response_type,
            "bunch_size": settings.bunch_size,
            "aggregation_window_ms": settings.aggregation_window_ms,
            "concurrency": settings.concurrency,
            "discipline": settings.discipline,
        }
        options.update(kwargs)
        return cls(transport, base_path, **options)

    async def __aenter__(self) -> "EntityManager":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @property
    def base_path(self) -> str:
        return self._base_path

    @base_path.setter
    def base_path(self, value: str) -> None:
        self._base_path = validate_path("base_path", value)

    @property
    def response_type(self) -> ResponseType:
        return self._response_type

    @response_type.setter
    def response_type(self, value: ResponseType | str) -> None:
        self._response_type = validate_response_type("response_type", value)

    @property
    def bunch_size(self) -> int:
        return self.aggregator.bunch_size

    @bunch_size.setter
    def bunch_size(self, value: int) -> None:
        self.aggregator.bunch_size = validate_positive_int("bunch_size", value)

    @property
    def aggregation_window_ms(self) -> float:
        return self.aggregator.window_ms

    @aggregation_window_ms.setter
    def aggregation_window_ms(self, value: float) -> None:
        self.aggregator.window_ms = validate_non_negative("aggregation_window_ms", value)

    @property
    def concurrency(self) -> int:
        return self.dispatcher.concurrency

    @concurrency.setter
    def concurrency(self, value: int) -> None:
        self.dispatcher.concurrency = validate_positive_int("concurrency", value)
        self.dispatcher.pump()

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @logger.setter
    def logger(self, value: logging.Logger) -> None:
        if not isinstance(value, logging.Logger):
            raise ValidationError("logger", value, "Expected a logging.Logger")
        self._logger = value
        components = (self._cache, self.waiting, self.router, self.dispatcher, self.aggregator)
        for component in components:
            component.logger = value

    @property
    def cache(self) -> EntityCache:
        return self._cache

    @property
    def idle(self) -> bool:
        """True when no id is buffered and no request is queued or in flight."""
        return self.dispatcher.idle and len(self.aggregator) == 0

    def get_stats(self) -> CacheStats:
        return self._cache.get_stats()

    # -------------------------------------------------------------------------
    # Response type hooks
    # -------------------------------------------------------------------------

    def on_json(self, data: Any) -> Any:
        """Post-process a decoded JSON body. Override to reshape responses."""
        return data

    def on_array_buffer(self, data: bytes | None) -> Any:
        return data

    def on_blob(self, data: bytes | None) -> Any:
        return data

    def on_text(self, data: str | None) -> Any:
        return data

    # -------------------------------------------------------------------------
    # Argument sniffing
    # -------------------------------------------------------------------------

    def create(
        self,
        data: Mapping[str, Any] | Sequence[Mapping[str, Any]],
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        """
        Create one document (a mapping) or several (a list of mappings).

        Raises:
            ValidationError: If ``data`` is empty or of another type
        """
        if isinstance(data, Mapping):
            return self.create_one(data, on_load, on_progress, on_error)
        if isinstance(data, list | tuple):
            if not data:
                raise ValidationError("data", data, "Cannot be an empty list")
            if len(data) == 1:
                return self.create_one(data[0], on_load, on_progress, on_error)
            return self.create_many(data, on_load, on_progress, on_error)
        raise ValidationError("data", data, "Expected a document or a list of documents")

    def read(
        self,
        ids: str | Sequence[str] | Query,
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        """
        Read by id, by ids, by query or everything.

        - a string or a one-element list reads one document
        - a list of two or more ids reads many
        - a non-empty mapping is a query
        - an empty mapping reads all documents

        Reads by id answer ``on_load`` with an ``{id: document}`` mapping.

        Raises:
            ValidationError: If ``ids`` is none of the above
        """
        kind, target = self._sniff_target(ids)
        if kind == "one":
            return self.read_one(target, on_load, on_progress, on_error)
        if kind == "many":
            return self.read_many(target, on_load, on_progress, on_error)
        if kind == "where":
            return self.read_where(
                target, on_load=on_load, on_progress=on_progress, on_error=on_error
            )
        return self.read_all(on_load=on_load, on_progress=on_progress, on_error=on_error)

    def update(
        self,
        ids: str | Sequence[str] | Query,
        data: Mapping[str, Any],
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        """Update by id, by ids, by query or everything (same targets as ``read``)."""
        kind, target = self._sniff_target(ids)
        if kind == "one":
            return self.update_one(target, data, on_load, on_progress, on_error)
        if kind == "many":
            return self.update_many(target, data, on_load, on_progress, on_error)
        if kind == "where":
            return self.update_where(target, data, on_load, on_progress, on_error)
        return self.update_all(data, on_load, on_progress, on_error)

    def delete(
        self,
        ids: str | Sequence[str] | Query,
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        """Delete by id, by ids, by query or everything (same targets as ``read``)."""
        kind, target = self._sniff_target(ids)
        if kind == "one":
            return self.delete_one(target, on_load, on_progress, on_error)
        if kind == "many":
            return self.delete_many(target, on_load, on_progress, on_error)
        if kind == "where":
            return self.delete_where(target, on_load, on_progress, on_error)
        return self.delete_all(on_load, on_progress, on_error)

    def _sniff_target(self, ids: Any) -> tuple[str, Any]:
        if isinstance(ids, str):
            return "one", _validate_id(ids)
        if isinstance(ids, Mapping):
            return ("where", ids) if ids else ("all", None)
        if isinstance(ids, list | tuple):
            keys = _validate_ids(ids)
            if len(keys) == 1:
                return "one", keys[0]
            return "many", keys
        raise ValidationError("ids", ids, "Expected an id, a list of ids or a query")

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create_one(
        self,
        document: Mapping[str, Any],
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        return self._send(
            Operation.CREATE_ONE, self.base_path, [document], on_load, on_progress, on_error
        )

    def create_many(
        self,
        documents: Sequence[Mapping[str, Any]],
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        return self._send(
            Operation.CREATE_MANY, self.base_path, list(documents), on_load, on_progress, on_error
        )

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def read_one(
        self,
        id: str,
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        """Read one document through the cache. ``on_load`` gets ``{id: document}``."""
        return self._read_cached([_validate_id(id)], on_load, on_progress, on_error)

    def read_many(
        self,
        ids: Sequence[str],
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        """
        Read documents by id through the cache.

        Keys already resolved are answered from memory. If every key is
        resolved ``on_load`` is called before this method returns. Otherwise
        the caller waits for the keys being fetched, and the missing keys are
        buffered for the next batch.

        A demand is completed with partial results when some of its keys can
        no longer be resolved (the server omitted them and nothing else is
        pending).
        """
        return self._read_cached(_validate_ids(ids), on_load, on_progress, on_error)

    def read_where(
        self,
        query: Query,
        projection: Mapping[str, Any] | None = None,
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        """Read documents matching a query. Results bypass the cache."""
        payload: dict[str, Any] = {"query": dict(query)}
        if projection is not None:
            payload["projection"] = dict(projection)
        return self._send(
            Operation.READ_WHERE, self.base_path, payload, on_load, on_progress, on_error
        )

    def read_all(
        self,
        projection: Mapping[str, Any] | None = None,
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        """Read every document. Results bypass the cache."""
        payload: dict[str, Any] = {"query": {}}
        if projection is not None:
            payload["projection"] = dict(projection)
        return self._send(
            Operation.READ_ALL, self.base_path, payload, on_load, on_progress, on_error
        )

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    def update_one(
        self,
        id: str,
        update: Mapping[str, Any],
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        key = _validate_id(id)
        return self._send(
            Operation.UPDATE_ONE,
            self._item_path(key),
            {"update": _validate_update(update)},
            on_load,
            on_progress,
            on_error,
            invalidate=[key],
        )

    def update_many(
        self,
        ids: Sequence[str],
        update: Mapping[str, Any],
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        keys = _validate_ids(ids)
        return self._send(
            Operation.UPDATE_MANY,
            self.base_path,
            {"ids": keys, "update": _validate_update(update)},
            on_load,
            on_progress,
            on_error,
            invalidate=keys,
        )

    def update_where(
        self,
        query: Query,
        update: Mapping[str, Any],
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        return self._send(
            Operation.UPDATE_WHERE,
            self.base_path,
            {"query": dict(query), "update": _validate_update(update)},
            on_load,
            on_progress,
            on_error,
            invalidate=None,
        )

    def update_all(
        self,
        update: Mapping[str, Any],
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        return self._send(
            Operation.UPDATE_ALL,
            self.base_path,
            {"query": {}, "update": _validate_update(update)},
            on_load,
            on_progress,
            on_error,
            invalidate=None,
        )

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    def delete_one(
        self,
        id: str,
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        key = _validate_id(id)
        return self._send(
            Operation.DELETE_ONE,
            self._item_path(key),
            None,
            on_load,
            on_progress,
            on_error,
            invalidate=[key],
        )

    def delete_many(
        self,
        ids: Sequence[str],
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        keys = _validate_ids(ids)
        return self._send(
            Operation.DELETE_MANY,
            self.base_path,
            {"ids": keys},
            on_load,
            on_progress,
            on_error,
            invalidate=keys,
        )

    def delete_where(
        self,
        query: Query,
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        return self._send(
            Operation.DELETE_WHERE,
            self.base_path,
            {"query": dict(query)},
            on_load,
            on_progress,
            on_error,
            invalidate=None,
        )

    def delete_all(
        self,
        on_load: OnLoad | None = None,
        on_progress: OnProgress | None = None,
        on_error: OnError | None = None,
    ) -> Ticket:
        return self._send(
            Operation.DELETE_ALL,
            self.base_path,
            {"query": {}},
            on_load,
            on_progress,
            on_error,
            invalidate=None,
        )

    # -------------------------------------------------------------------------
    # Awaitable forms
    # -------------------------------------------------------------------------

    async def fetch(
        self, ids: str | Sequence[str], on_progress: OnProgress | None = None
    ) -> dict[str, Any]:
        """
        Read documents by id and wait for them.

        Returns:
            ``{id: document}`` for every id that could be resolved

        Raises:
            RequestError: If the batch carrying one of the ids failed
            DemandCancelledError: If the manager was closed meanwhile
        """
        if isinstance(ids, Mapping):
            raise ValidationError("ids", ids, "Use fetch_where() or fetch_all() for queries")
        return await self._wait(lambda load, error: self.read(ids, load, on_progress, error))

    async def get(self, id: str) -> Any:
        """Read one document by id, None if the server does not return it."""
        results = await self.fetch(id)
        return results.get(id)

    async def fetch_where(
        self, query: Query, projection: Mapping[str, Any] | None = None
    ) -> Any:
        return await self._wait(
            lambda load, error: self.read_where(query, projection, load, None, error)
        )

    async def fetch_all(self, projection: Mapping[str, Any] | None = None) -> Any:
        return await self._wait(lambda load, error: self.read_all(projection, load, None, error))

    async def create_async(self, data: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> Any:
        return await self._wait(lambda load, error: self.create(data, load, None, error))

    async def update_async(
        self, ids: str | Sequence[str] | Query, data: Mapping[str, Any]
    ) -> Any:
        return await self._wait(lambda load, error: self.update(ids, data, load, None, error))

    async def delete_async(self, ids: str | Sequence[str] | Query) -> Any:
        return await self._wait(lambda load, error: self.delete(ids, load, None, error))

    async def _wait(self, start: Any) -> Any:
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def on_load(data: Any) -> None:
            if not future.done():
                future.set_result(data)

        def on_error(error: Exception) -> None:
            if not future.done():
                future.set_exception(error)

        ticket: Ticket = start(on_load, on_error)
        try:
            return await future
        except asyncio.CancelledError:
            ticket.cancel()
            raise

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def flush(self) -> int:
        """Send buffered ids now instead of waiting for the window to elapse."""
        return self.aggregator.flush()

    async def join(self) -> None:
        """Flush buffered ids and wait until every request has completed."""
        while not self.idle:
            if len(self.aggregator):
                self.aggregator.flush()
            await self.dispatcher.join()
            # Completion handlers may have queued more work
            await asyncio.sleep(0)

    async def close(self) -> None:
        """
        Abandon everything outstanding.

        Buffered ids are dropped, queued and in-flight requests are
        cancelled, and their callers get a DemandCancelledError. Resolved
        cache entries are kept.
        """
        error = DemandCancelledError(f"Manager for {self.base_path} closed")
        self.aggregator.cancel()

        abandoned = [*self.dispatcher.request_queue, *self.dispatcher.process_queue]
        for descriptor in abandoned:
            self.dispatcher.cancel(descriptor)
        for key in self._cache.pending_keys():
            self._cache.remove(key)

        self.waiting.fail_all(error)
        for descriptor in abandoned:
            if not descriptor.operation.is_cached:
                descriptor.on_error(error)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _item_path(self, id: str) -> str:
        return f"{self.base_path.rstrip('/')}/{id}"

    def _default_error(self, error: Exception) -> None:
        self._logger.error("Request on %s failed: %s", self.base_path, error)

    def _progress(self, callback: OnProgress | None) -> OnProgress | None:
        tracker = self.progress_tracker
        if tracker is None:
            return callback

        def on_progress(event: ProgressEvent) -> None:
            tracker.update(self.base_path, callback, event)

        return on_progress

    def _read_cached(
        self,
        keys: list[str],
        on_load: OnLoad | None,
        on_progress: OnProgress | None,
        on_error: OnError | None,
    ) -> Ticket:
        ticket = Ticket()
        demand = WaitingDemand(
            on_load=_settling(ticket, on_load),
            on_progress=on_progress or _ignore,
            on_error=_settling(ticket, on_error or self._default_error),
        )

        for key in dict.fromkeys(keys):
            entry = self._cache.lookup(key)
            if entry.is_present:
                demand.results[key] = entry.value
            elif entry.is_pending:
                demand.under_request.add(key)
            else:
                demand.to_request.append(key)

        if demand.complete:
            demand.on_load(demand.results)
            return ticket

        scheduled = demand.to_request
        demand.to_request = []
        for key in scheduled:
            self._cache.add(key)
            demand.under_request.add(key)

        self.waiting.register(demand)
        ticket._retract = lambda: self.waiting.cancel(demand)
        if scheduled:
            self.aggregator.add(scheduled)
        return ticket

    def _queue_bunch(self, bunch: list[str]) -> None:
        ids = tuple(bunch)
        descriptor = RequestDescriptor(
            operation=Operation.READ_MANY,
            path=self.base_path,
            payload={"ids": list(ids)},
            response_type=self.response_type,
            on_progress=self._progress(lambda event: self._batch_progress(ids, event)),
            ids=ids,
        )
        self.dispatcher.submit(descriptor, pump=False)

    def _batch_progress(self, ids: tuple[str, ...], event: ProgressEvent) -> None:
        keys = set(ids)
        for demand in self.waiting:
            if demand.under_request & keys:
                demand.on_progress(event)

    def _on_resolved(self, ids: tuple[str, ...], data: Any) -> None:
        try:
            documents = normalize_documents(data)
        except TypeError as e:
            self._logger.error("Unexpected batch response on %s: %s", self.base_path, e)
            self._on_failed(ids, ResponseParseError(self.response_type.value, e))
            return

        for key, value in documents.items():
            self._cache.add(key, value)

        missing = [key for key in ids if key not in documents]
        if missing:
            self._logger.warning(
                "Server omitted %d of %d requested id(s) on %s: %s",
                len(missing),
                len(ids),
                self.base_path,
                missing,
            )
            for key in missing:
                if self._cache.peek(key).is_pending:
                    self._cache.remove(key)

        self.waiting.reconcile(lambda: self.idle)

    def _on_failed(self, ids: tuple[str, ...], error: RequestError) -> None:
        for key in ids:
            if self._cache.peek(key).is_pending:
                self._cache.remove(key)
        self.waiting.fail(ids, error)
        self.waiting.reconcile(lambda: self.idle)

    def _on_idle(self) -> None:
        """Settle demands starved by omitted ids."""
        self.waiting.reconcile(lambda: self.idle)

    def _retract(self, descriptor: RequestDescriptor) -> bool:
        retracted = self.dispatcher.cancel(descriptor)
        if retracted and self.idle:
            self._on_idle()
        return retracted

    def _send(
        self,
        operation: Operation,
        path: str,
        payload: Any,
        on_load: OnLoad | None,
        on_progress: OnProgress | None,
        on_error: OnError | None,
        invalidate: list[str] | None | bool = False,
    ) -> Ticket:
        ticket = Ticket()
        load = _settling(ticket, on_load)

        if invalidate is not False:

            def on_success(data: Any) -> None:
                self._cache.invalidate(invalidate)  # type: ignore[arg-type]
                load(data)

        else:
            on_success = load

        descriptor = RequestDescriptor(
            operation=operation,
            path=path,
            payload=payload,
            response_type=self.response_type,
            on_load=on_success,
            on_progress=self._progress(on_progress) or _ignore,
            on_error=_settling(ticket, on_error or self._default_error),
        )
        ticket._retract = lambda: self._retract(descriptor)
        self.dispatcher.submit(descriptor)
        return ticket


def _ignore(*args: Any) -> None:
    pass


def _settling(ticket: Ticket, callback: Any) -> Any:
    def settle(value: Any) -> None:
        ticket.settled = True
        if callback is not None:
            callback(value)

    return settle


def _validate_id(value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError("id", value, f"Expected a string, got {type(value).__name__}")
    if not value.strip():
        raise ValidationError("id", value, "Cannot be empty")
    return value


def _validate_ids(ids: Any) -> list[str]:
    if isinstance(ids, str) or not isinstance(ids, Sequence):
        raise ValidationError("ids", ids, "Expected a list of ids")
    if not ids:
        raise ValidationError("ids", ids, "Cannot be an empty list")
    return [_validate_id(key) for key in ids]


def _validate_update(update: Any) -> dict[str, Any]:
    if not isinstance(update, Mapping):
        raise ValidationError("update", update, "Expected a mapping")
    return dict(update)

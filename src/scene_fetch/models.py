"""Core models for scene-fetch."""

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

OnLoad = Callable[[Any], None]
OnProgress = Callable[["ProgressEvent"], None]
OnError = Callable[[Exception], None]


class HttpVerb(str, Enum):
    """CRUD actions mapped to the verbs understood by the data server."""

    CREATE = "PUT"
    READ = "POST"
    UPDATE = "PATCH"
    DELETE = "DELETE"


class ResponseType(str, Enum):
    """Declared content type of a response body."""

    ARRAY_BUFFER = "arraybuffer"
    BLOB = "blob"
    JSON = "json"
    TEXT = "text"
    DEFAULT = ""


class QueueDiscipline(str, Enum):
    """Order in which queued requests are promoted to a concurrency slot."""

    FIFO = "fifo"  # oldest submitted first
    LIFO = "lifo"  # most recently submitted first


class HttpStatusCode(IntEnum):
    """
    Status codes known to the data server.

    Only ``OK`` is a success. Any other member is an application error;
    a code missing from this table is an unknown status.
    """

    # 100
    CONTINUE = 100
    SWITCHING_PROTOCOLS = 101
    PROCESSING = 102

    # 200
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NON_AUTHORITATIVE_INFORMATION = 203
    NO_CONTENT = 204
    RESET_CONTENT = 205
    PARTIAL_CONTENT = 206
    MULTI_STATUS = 207
    ALREADY_REPORTED = 208
    CONTENT_DIFFERENT = 210
    IM_USED = 226

    # 300
    MULTIPLE_CHOICES = 300
    MOVED_PERMANENTLY = 301
    FOUND = 302
    SEE_OTHER = 303
    NOT_MODIFIED = 304
    USE_PROXY = 305
    UNUSED = 306
    TEMPORARY_REDIRECT = 307
    PERMANENT_REDIRECT = 308
    TOO_MANY_REDIRECTS = 310

    # 400
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    PAYMENT_REQUIRED = 402
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    NOT_ACCEPTABLE = 406
    PROXY_AUTHENTICATION_REQUIRED = 407
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    GONE = 410
    LENGTH_REQUIRED = 411
    PRECONDITION_FAILED = 412
    REQUEST_ENTITY_TOO_LARGE = 413
    REQUEST_RANGE_UNSATISFIABLE = 416
    EXPECTATION_FAILED = 417
    IM_A_TEAPOT = 418
    BAD_MAPPING = 421
    UNPROCESSABLE_ENTITY = 422
    LOCKED = 423
    METHOD_FAILURE = 424
    UNORDERED_COLLECTION = 425
    UPGRADE_REQUIRED = 426
    PRECONDITION_REQUIRED = 428
    TOO_MANY_REQUESTS = 429
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431
    NO_RESPONSE = 444
    RETRY_WITH = 449
    BLOCKED_BY_WINDOWS_PARENTAL_CONTROLS = 450
    UNAVAILABLE_FOR_LEGAL_REASONS = 451
    UNRECOVERABLE_ERROR = 456
    SSL_CERTIFICATE_ERROR = 495
    SSL_CERTIFICATE_REQUIRED = 496
    HTTP_REQUEST_SENT_TO_HTTPS_PORT = 497
    CLIENT_CLOSED_REQUEST = 499

    # 500
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504
    HTTP_VERSION_NOT_SUPPORTED = 505
    VARIANT_ALSO_NEGOTIATES = 506
    INSUFFICIENT_STORAGE = 507
    LOOP_DETECTED = 508
    BANDWIDTH_LIMIT_EXCEEDED = 509
    NOT_EXTENDED = 510
    NETWORK_AUTHENTICATION_REQUIRED = 511
    UNKNOWN_ERROR = 520
    WEB_SERVER_IS_DOWN = 521
    CONNECTION_TIMED_OUT = 522
    ORIGIN_IS_UNREACHABLE = 523
    A_TIMEOUT_OCCURRED = 524
    SSL_HANDSHAKE_FAILED = 525
    INVALID_SSL_CERTIFICATE = 526
    RAILGUN_ERROR = 527

    @classmethod
    def is_known(cls, status: int) -> bool:
        """True if ``status`` belongs to the status table."""
        return status in cls._value2member_map_


class Operation(str, Enum):
    """Kind of work carried by a RequestDescriptor."""

    CREATE_ONE = "create_one"
    CREATE_MANY = "create_many"
    READ_ONE = "read_one"
    READ_MANY = "read_many"
    READ_WHERE = "read_where"
    READ_ALL = "read_all"
    UPDATE_ONE = "update_one"
    UPDATE_MANY = "update_many"
    UPDATE_WHERE = "update_where"
    UPDATE_ALL = "update_all"
    DELETE_ONE = "delete_one"
    DELETE_MANY = "delete_many"
    DELETE_WHERE = "delete_where"
    DELETE_ALL = "delete_all"

    @property
    def verb(self) -> HttpVerb:
        """HTTP verb used to send this operation."""
        action = self.value.split("_", 1)[0]
        return _VERBS[action]

    @property
    def is_read(self) -> bool:
        return self.verb is HttpVerb.READ

    @property
    def is_cached(self) -> bool:
        """True for reads resolved through the cache and the waiting registry."""
        return self in (Operation.READ_ONE, Operation.READ_MANY)


_VERBS = {
    "create": HttpVerb.CREATE,
    "read": HttpVerb.READ,
    "update": HttpVerb.UPDATE,
    "delete": HttpVerb.DELETE,
}


@dataclass(frozen=True)
class ProgressEvent:
    """
    Progress of a response download.

    Attributes:
        loaded: Bytes received so far
        total: Expected total bytes (None if the server did not announce it)
        type: Event name ("progress" while streaming)
    """

    loaded: int
    total: int | None = None
    type: str = "progress"

    @property
    def length_computable(self) -> bool:
        return bool(self.total)

    @property
    def ratio(self) -> float | None:
        """Fraction downloaded in [0, 1], or None when the total is unknown."""
        if not self.total:
            return None
        return self.loaded / self.total


def _noop(*args: Any) -> None:
    pass


@dataclass
class RequestDescriptor:
    """
    A unit of work submitted to the Dispatcher.

    Lifecycle: created by a CRUD entry point, queued in the request queue,
    promoted to a process queue slot, and removed from it once its transport
    call completes.
    """

    operation: Operation
    path: str
    payload: Any = None
    response_type: ResponseType = ResponseType.JSON
    on_load: OnLoad = _noop
    on_progress: OnProgress = _noop
    on_error: OnError = _noop
    ids: tuple[str, ...] = ()  # keys carried by cached reads
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)

    @property
    def verb(self) -> HttpVerb:
        return self.operation.verb


@dataclass(eq=False)
class WaitingDemand:
    """
    A caller's multi-key read not fully satisfiable from cache at call time.

    Attributes:
        results: Keys already resolved, with their values
        under_request: Keys whose fetch is pending
        to_request: Keys not yet scheduled (emptied once scheduled)
    """

    results: dict[str, Any] = field(default_factory=dict)
    under_request: set[str] = field(default_factory=set)
    to_request: list[str] = field(default_factory=list)
    on_load: OnLoad = _noop
    on_progress: OnProgress = _noop
    on_error: OnError = _noop

    @property
    def complete(self) -> bool:
        return not self.under_request and not self.to_request


@dataclass(eq=False)
class Ticket:
    """
    Handle returned by every CRUD call.

    ``cancel()`` retracts the caller's interest: its callbacks will not fire.
    Work shared with other callers (a batch carrying other keys) still runs.
    """

    _retract: Callable[[], bool] = field(default=lambda: False, repr=False)
    cancelled: bool = False
    settled: bool = False

    def cancel(self) -> bool:
        """
        Cancel the operation.

        Returns:
            True if the operation was still outstanding and is now cancelled
        """
        if self.cancelled or self.settled:
            return False
        self.cancelled = self._retract()
        return self.cancelled

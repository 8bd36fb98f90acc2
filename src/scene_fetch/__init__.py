"""
scene-fetch: data fetching and caching for 3D scene viewers.

This library fetches scene entities (companies, sites, buildings, objects,
geometries, materials, ...) from a data server with:
- A tri-state cache (absent, pending, present) per entity type
- Coalescing of concurrent reads of the same id
- Debounced batching of id reads
- Bounded concurrency of transport calls
- Deduplication of identical raw downloads
- Pluggable transports via TransportProtocol

Example:
    from scene_fetch import FetchSettings, SceneDataClient

    async with SceneDataClient.from_settings(FetchSettings.from_env()) as client:
        objects = await client.objects.fetch(["a", "b", "c"])

        client.geometries.read(
            ["g1", "g2"],
            on_load=lambda geometries: print(len(geometries)),
            on_error=lambda error: print(error),
        )
        await client.join()
"""

# ---------------------------------------------------------------------------
# Lazy imports
# ---------------------------------------------------------------------------
# HttpxTransport and SceneDataClient are imported lazily via __getattr__ below
# so that the core engine can be imported with a custom transport and without
# importing httpx.
# ---------------------------------------------------------------------------
from typing import TYPE_CHECKING

from .aggregator import Aggregator
from .cache import PENDING, CacheEntry, CacheState, CacheStats, EntityCache
from .config import FetchSettings
from .dispatcher import Dispatcher
from .exceptions import (
    ConfigurationError,
    DemandCancelledError,
    RequestError,
    ResponseError,
    ResponseParseError,
    SceneFetchError,
    TransportError,
    UnknownStatusError,
    ValidationError,
)
from .manager import EntityManager, normalize_documents
from .models import (
    HttpStatusCode,
    HttpVerb,
    Operation,
    ProgressEvent,
    QueueDiscipline,
    RequestDescriptor,
    ResponseType,
    Ticket,
    WaitingDemand,
)
from .orchestrator import RawRequest, RequestCoalescer
from .progress import ProgressTracker
from .router import ResponseRouter
from .transport import TransportProtocol, TransportRequest, TransportResponse
from .waiting import WaitingRegistry

if TYPE_CHECKING:
    from .httpx_transport import HttpxTransport as HttpxTransport
    from .managers import SceneDataClient as SceneDataClient

try:
    from ._version import __version__  # type: ignore[import-not-found]
except ImportError:
    __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # Main classes
    "EntityManager",
    "SceneDataClient",
    "RequestCoalescer",
    "RawRequest",
    "FetchSettings",
    "ProgressTracker",
    "normalize_documents",
    # Transport
    "TransportProtocol",
    "TransportRequest",
    "TransportResponse",
    "HttpxTransport",
    # Engine components
    "EntityCache",
    "CacheEntry",
    "CacheState",
    "CacheStats",
    "PENDING",
    "WaitingRegistry",
    "Aggregator",
    "Dispatcher",
    "ResponseRouter",
    # Models
    "HttpStatusCode",
    "HttpVerb",
    "Operation",
    "ProgressEvent",
    "QueueDiscipline",
    "RequestDescriptor",
    "ResponseType",
    "Ticket",
    "WaitingDemand",
    # Exceptions - Base
    "SceneFetchError",
    # Exceptions - Categories
    "ConfigurationError",
    "RequestError",
    # Exceptions - Concrete
    "ValidationError",
    "TransportError",
    "ResponseError",
    "UnknownStatusError",
    "ResponseParseError",
    "DemandCancelledError",
]


def __getattr__(name: str) -> type:
    """Lazy import for classes that require httpx.

    See Also:
        PEP 562 -- Module __getattr__ and __dir__
    """
    if name == "HttpxTransport":
        from .httpx_transport import HttpxTransport

        return HttpxTransport
    if name == "SceneDataClient":
        from .managers import SceneDataClient

        return SceneDataClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

"""Managers of the scene entity types and the client bundling them."""

import logging
from typing import Any

from .config import FetchSettings, validate_path
from .exceptions import ResponseError, UnknownStatusError
from .manager import EntityManager, normalize_documents
from .models import HttpStatusCode, OnProgress, ResponseType
from .orchestrator import RequestCoalescer
from .progress import ProgressTracker
from .router import decode_body
from .transport import TransportProtocol


class DocumentManager(EntityManager):
    """EntityManager whose JSON responses are keyed by document id."""

    def on_json(self, data: Any) -> Any:
        return normalize_documents(data)


class CompaniesManager(DocumentManager):
    default_base_path = "/companies"


class SitesManager(DocumentManager):
    default_base_path = "/sites"


class BuildingsManager(DocumentManager):
    default_base_path = "/buildings"


class ScenesManager(DocumentManager):
    default_base_path = "/scenes"


class ObjectsManager(DocumentManager):
    default_base_path = "/objects"


class GeometriesManager(DocumentManager):
    default_base_path = "/geometries"


class MaterialsManager(DocumentManager):
    default_base_path = "/materials"


class TexturesManager(DocumentManager):
    default_base_path = "/textures"


class CurvesManager(DocumentManager):
    default_base_path = "/curves"


MANAGER_CLASSES: dict[str, type[EntityManager]] = {
    "companies": CompaniesManager,
    "sites": SitesManager,
    "buildings": BuildingsManager,
    "scenes": ScenesManager,
    "objects": ObjectsManager,
    "geometries": GeometriesManager,
    "materials": MaterialsManager,
    "textures": TexturesManager,
    "curves": CurvesManager,
}
"""Entity name to manager class, as used by the CLI and SceneDataClient."""


class SceneDataClient:
    """
    One manager per scene entity type over a shared transport.

    Each manager keeps its own cache and dispatcher. Raw downloads share a
    single RequestCoalescer, so identical concurrent downloads are sent once.

    Example:
        async with SceneDataClient.from_settings(FetchSettings.from_env()) as client:
            objects = await client.objects.fetch(["a", "b"])
            texture = await client.download("/resources/brick.png")

    Args:
        transport: Transport shared by every manager
        settings: Settings applied to every manager
        coalescer: Coalescer for raw downloads (one is created if omitted)
        logger: Logger handed to every component
    """

    def __init__(
        self,
        transport: TransportProtocol,
        settings: FetchSettings | None = None,
        coalescer: RequestCoalescer | None = None,
        logger: logging.Logger | None = None,
        progress_tracker: ProgressTracker | None = None,
    ) -> None:
        self.transport = transport
        self.settings = settings or FetchSettings()
        self.logger = logger or logging.getLogger(__name__)
        self.coalescer = coalescer or RequestCoalescer(
            transport,
            max_simultaneous=max(self.settings.concurrency, 3),
            discipline=self.settings.discipline,
            logger=self.logger,
        )
        self.managers: dict[str, EntityManager] = {
            name: manager_class.from_settings(
                transport, self.settings, logger=self.logger, progress_tracker=progress_tracker
            )
            for name, manager_class in MANAGER_CLASSES.items()
        }

    @classmethod
    def from_settings(cls, settings: FetchSettings, **kwargs: Any) -> "SceneDataClient":
        """Create a client talking HTTP to ``settings.base_url``."""
        from .httpx_transport import HttpxTransport

        transport = HttpxTransport(settings.base_url, timeout=settings.timeout_seconds)
        return cls(transport, settings, **kwargs)

    async def __aenter__(self) -> "SceneDataClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def __getitem__(self, name: str) -> EntityManager:
        return self.managers[name]

    @property
    def companies(self) -> EntityManager:
        return self.managers["companies"]

    @property
    def sites(self) -> EntityManager:
        return self.managers["sites"]

    @property
    def buildings(self) -> EntityManager:
        return self.managers["buildings"]

    @property
    def scenes(self) -> EntityManager:
        return self.managers["scenes"]

    @property
    def objects(self) -> EntityManager:
        return self.managers["objects"]

    @property
    def geometries(self) -> EntityManager:
        return self.managers["geometries"]

    @property
    def materials(self) -> EntityManager:
        return self.managers["materials"]

    @property
    def textures(self) -> EntityManager:
        return self.managers["textures"]

    @property
    def curves(self) -> EntityManager:
        return self.managers["curves"]

    async def download(
        self,
        path: str,
        response_type: ResponseType = ResponseType.ARRAY_BUFFER,
        on_progress: OnProgress | None = None,
    ) -> Any:
        """
        Download a resource, sharing the transfer with identical downloads.

        Returns:
            The decoded body (bytes for array buffers and blobs)

        Raises:
            ResponseError: If the server answers with an error status
            TransportError: If the transport fails
        """
        validate_path("path", path)
        response = await self.coalescer.request(
            "GET", path, on_progress=on_progress, response_type=response_type
        )
        if response.status != HttpStatusCode.OK:
            if not HttpStatusCode.is_known(response.status):
                raise UnknownStatusError(response.status, response.body, path)
            raise ResponseError(response.status, response.body, path)
        return decode_body(response.body, response_type)

    async def join(self) -> None:
        """Wait until every manager and the coalescer are idle."""
        for manager in self.managers.values():
            await manager.join()
        await self.coalescer.join()

    async def close(self) -> None:
        """Abandon outstanding work and close the transport."""
        for manager in self.managers.values():
            await manager.close()
        await self.transport.close()

"""Unit tests for the entity managers and SceneDataClient."""

import asyncio

import pytest

from scene_fetch.config import FetchSettings
from scene_fetch.exceptions import ResponseError, UnknownStatusError, ValidationError
from scene_fetch.managers import (
    MANAGER_CLASSES,
    BuildingsManager,
    GeometriesManager,
    ObjectsManager,
    SceneDataClient,
)
from scene_fetch.models import ResponseType
from scene_fetch.orchestrator import RequestCoalescer
from scene_fetch.transport import TransportResponse
from tests.fixtures.transport import FakeTransport, json_response


class TestEntityManagers:
    """Tests for the concrete managers."""

    @pytest.mark.parametrize(
        ("name", "path"),
        [
            ("companies", "/companies"),
            ("sites", "/sites"),
            ("buildings", "/buildings"),
            ("scenes", "/scenes"),
            ("objects", "/objects"),
            ("geometries", "/geometries"),
            ("materials", "/materials"),
            ("textures", "/textures"),
            ("curves", "/curves"),
        ],
    )
    def test_default_paths(self, name: str, path: str) -> None:
        manager = MANAGER_CLASSES[name](FakeTransport())
        assert manager.base_path == path

    def test_path_override(self) -> None:
        manager = ObjectsManager(FakeTransport(), "/v2/objects")
        assert manager.base_path == "/v2/objects"

    async def test_json_hook_keys_query_results_by_id(self) -> None:
        transport = FakeTransport(
            lambda request: json_response([{"_id": "b1", "floors": 3}, {"_id": "b2"}])
        )
        manager = BuildingsManager(transport)

        results = await manager.fetch_where({"floors": {"$gt": 1}})

        assert results == {"b1": {"_id": "b1", "floors": 3}, "b2": {"_id": "b2"}}

    async def test_reads_by_id(self, transport: FakeTransport) -> None:
        manager = GeometriesManager(transport, aggregation_window_ms=1)

        results = await manager.fetch(["id1", "id2"])

        assert set(results) == {"id1", "id2"}
        assert transport.requests[0].url == "/geometries"


class TestSceneDataClient:
    """Tests for SceneDataClient."""

    def test_one_manager_per_entity(self) -> None:
        client = SceneDataClient(FakeTransport())

        assert set(client.managers) == set(MANAGER_CLASSES)
        assert client.objects is client["objects"]
        assert client.companies.base_path == "/companies"
        assert client.curves.base_path == "/curves"
        assert isinstance(client.objects, ObjectsManager)

    def test_settings_apply_to_every_manager(self) -> None:
        settings = FetchSettings(bunch_size=50, concurrency=2, aggregation_window_ms=10)
        client = SceneDataClient(FakeTransport(), settings)

        for manager in client.managers.values():
            assert manager.bunch_size == 50
            assert manager.concurrency == 2
            assert manager.aggregation_window_ms == 10

    def test_managers_have_separate_caches(self) -> None:
        client = SceneDataClient(FakeTransport())
        assert client.objects.cache is not client.geometries.cache

    def test_injected_coalescer(self) -> None:
        coalescer = RequestCoalescer(FakeTransport())
        client = SceneDataClient(FakeTransport(), coalescer=coalescer)
        assert client.coalescer is coalescer

    def test_from_settings_uses_httpx(self) -> None:
        from scene_fetch.httpx_transport import HttpxTransport

        client = SceneDataClient.from_settings(FetchSettings(base_url="http://scene.test"))

        assert isinstance(client.transport, HttpxTransport)
        assert client.transport.base_url == "http://scene.test"

    async def test_identical_downloads_are_sent_once(self) -> None:
        transport = FakeTransport(lambda request: TransportResponse(200, b"\x89PNG"), gated=True)
        client = SceneDataClient(transport)

        first = asyncio.create_task(client.download("/textures/brick.png"))
        second = asyncio.create_task(client.download("/textures/brick.png"))
        await asyncio.sleep(0)
        transport.release()

        assert await first == b"\x89PNG"
        assert await second == b"\x89PNG"
        assert len(transport.requests) == 1
        assert transport.requests[0].method == "GET"

    async def test_download_text(self) -> None:
        transport = FakeTransport(lambda request: TransportResponse(200, b"v 0 0 0"))
        client = SceneDataClient(transport)

        assert await client.download("/models/a.obj", ResponseType.TEXT) == "v 0 0 0"

    async def test_download_error_status(self) -> None:
        transport = FakeTransport(lambda request: TransportResponse(404))
        client = SceneDataClient(transport)

        with pytest.raises(ResponseError) as exc_info:
            await client.download("/missing.png")
        assert exc_info.value.status == 404

    async def test_download_unknown_status(self) -> None:
        transport = FakeTransport(lambda request: TransportResponse(299))
        client = SceneDataClient(transport)

        with pytest.raises(UnknownStatusError):
            await client.download("/odd.png")

    async def test_download_invalid_path(self) -> None:
        client = SceneDataClient(FakeTransport())
        with pytest.raises(ValidationError):
            await client.download("")

    async def test_close_closes_transport(self) -> None:
        transport = FakeTransport()
        async with SceneDataClient(transport) as client:
            client.objects.read("id1")

        assert transport.closed
        assert client.objects.idle

    async def test_join(self, transport: FakeTransport) -> None:
        client = SceneDataClient(transport)
        client.objects.read(["id1", "id2"])
        client.materials.read_all()

        await client.join()

        assert len(transport.requests) == 2
        assert client.objects.cache.get("id1") == {"_id": "id1", "n": 1}

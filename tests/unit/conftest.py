"""Unit test fixtures."""

import pytest

from scene_fetch import EntityManager


@pytest.fixture
async def manager(transport, test_logger):
    """EntityManager on /objects with a short aggregation window."""
    manager = EntityManager(
        transport,
        "/objects",
        aggregation_window_ms=5,
        logger=test_logger,
    )
    yield manager
    await manager.close()


@pytest.fixture
async def gated_manager(gated_transport, test_logger):
    """EntityManager whose transport calls block until released."""
    manager = EntityManager(
        gated_transport,
        "/objects",
        aggregation_window_ms=5,
        logger=test_logger,
    )
    yield manager
    gated_transport.release()
    await manager.close()

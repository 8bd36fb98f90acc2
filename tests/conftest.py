"""Pytest fixtures for scene-fetch tests."""

import logging

import pytest

from tests.fixtures.transport import FakeTransport, document_server, make_documents


@pytest.fixture
def documents() -> dict[str, dict]:
    """Documents known to the fake data server."""
    return make_documents(2000)


@pytest.fixture
def transport(documents) -> FakeTransport:
    """Fake transport serving ``documents``."""
    return FakeTransport(document_server(documents))


@pytest.fixture
def gated_transport(documents) -> FakeTransport:
    """Fake transport whose calls block until ``release()``."""
    return FakeTransport(document_server(documents), gated=True)


@pytest.fixture
def test_logger() -> logging.Logger:
    """Logger captured by caplog under a dedicated name."""
    logger = logging.getLogger("scene_fetch.tests")
    logger.setLevel(logging.DEBUG)
    return logger

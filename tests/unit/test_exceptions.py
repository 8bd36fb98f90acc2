"""Tests for exception classes."""

import pytest

from scene_fetch.exceptions import (
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


class TestHierarchy:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize(
        ("exc_class", "category"),
        [
            (ValidationError, ConfigurationError),
            (TransportError, RequestError),
            (ResponseError, RequestError),
            (UnknownStatusError, ResponseError),
            (ResponseParseError, RequestError),
        ],
    )
    def test_categories(self, exc_class: type, category: type) -> None:
        assert issubclass(exc_class, category)
        assert issubclass(exc_class, SceneFetchError)

    def test_cancelled_is_not_a_request_error(self) -> None:
        assert issubclass(DemandCancelledError, SceneFetchError)
        assert not issubclass(DemandCancelledError, RequestError)


class TestTransportError:
    """Tests for TransportError."""

    def test_message_with_method_and_url(self) -> None:
        cause = TimeoutError("read timeout")
        error = TransportError("Timed out", cause, method="POST", url="/objects")

        assert str(error) == "Timed out [POST /objects]"
        assert error.cause is cause
        assert error.method == "POST"
        assert error.url == "/objects"

    def test_message_with_url_only(self) -> None:
        assert str(TransportError("Aborted", url="/objects")) == "Aborted [/objects]"

    def test_plain_message(self) -> None:
        error = TransportError("Network error")
        assert str(error) == "Network error"
        assert error.cause is None


class TestResponseErrors:
    """Tests for ResponseError and UnknownStatusError."""

    def test_response_error(self) -> None:
        error = ResponseError(503, b"maintenance", "/scenes")

        assert error.status == 503
        assert error.body == b"maintenance"
        assert str(error) == "Request failed with status 503 [/scenes]"

    def test_response_error_without_url(self) -> None:
        assert str(ResponseError(404)) == "Request failed with status 404"

    def test_unknown_status(self) -> None:
        error = UnknownStatusError(299, url="/scenes")

        assert error.status == 299
        assert str(error) == "Unknown response status 299 [/scenes]"

    def test_parse_error(self) -> None:
        cause = ValueError("Expecting value")
        error = ResponseParseError("json", cause)

        assert error.response_type == "json"
        assert error.cause is cause
        assert str(error) == "Unable to parse 'json' response: Expecting value"

    def test_catch_all_request_errors(self) -> None:
        with pytest.raises(RequestError):
            raise UnknownStatusError(600)

"""Settings and validation helpers.

Every setting can be passed explicitly or read from the environment:

- ``SCENE_FETCH_BASE_URL``: root URL of the data server
- ``SCENE_FETCH_BUNCH_SIZE``: maximum ids per batch read (default 500)
- ``SCENE_FETCH_AGGREGATION_WINDOW_MS``: debounce window (default 200)
- ``SCENE_FETCH_CONCURRENCY``: simultaneous requests per manager (default 6)
- ``SCENE_FETCH_TIMEOUT``: transport timeout in seconds (default 30)
- ``SCENE_FETCH_QUEUE_DISCIPLINE``: ``fifo`` (default) or ``lifo``
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .aggregator import DEFAULT_AGGREGATION_WINDOW_MS, DEFAULT_BUNCH_SIZE
from .dispatcher import DEFAULT_CONCURRENCY
from .exceptions import ValidationError
from .models import QueueDiscipline, ResponseType

ENV_PREFIX = "SCENE_FETCH_"
"""Prefix of the environment variables read by ``FetchSettings.from_env()``."""

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_TIMEOUT_SECONDS = 30.0


def validate_path(field: str, value: Any) -> str:
    """
    Validate a resource path or URL.

    Raises:
        ValidationError: If the value is not a non-empty, non-blank string
    """
    if value is None:
        raise ValidationError(field, value, "Cannot be None")
    if not isinstance(value, str):
        raise ValidationError(field, value, f"Expected a string, got {type(value).__name__}")
    if not value:
        raise ValidationError(field, value, "Cannot be an empty string")
    if not value.strip():
        raise ValidationError(field, value, "Cannot contain only whitespace")
    return value


def validate_positive_int(field: str, value: Any) -> int:
    """
    Validate a strictly positive integer.

    Raises:
        ValidationError: If the value is not an int greater than zero
    """
    if value is None:
        raise ValidationError(field, value, "Cannot be None")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, value, f"Expected an integer, got {type(value).__name__}")
    if value <= 0:
        raise ValidationError(field, value, "Must be greater than zero")
    return value


def validate_non_negative(field: str, value: Any) -> float:
    """
    Validate a number greater than or equal to zero.

    Raises:
        ValidationError: If the value is not a number or is negative
    """
    if value is None:
        raise ValidationError(field, value, "Cannot be None")
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationError(field, value, f"Expected a number, got {type(value).__name__}")
    if value < 0:
        raise ValidationError(field, value, "Cannot be negative")
    return value


def validate_response_type(field: str, value: Any) -> ResponseType:
    """
    Validate a response type, accepting members or their string values.

    Raises:
        ValidationError: If the value is not a known response type
    """
    if value is None:
        raise ValidationError(field, value, "Cannot be None")
    try:
        return ResponseType(value)
    except ValueError:
        allowed = ", ".join(repr(t.value) for t in ResponseType)
        raise ValidationError(field, value, f"Expected one of {allowed}") from None


@dataclass(frozen=True)
class FetchSettings:
    """
    Settings shared by the managers of a client.

    Attributes:
        base_url: Root URL of the data server
        bunch_size: Maximum number of ids per batch read
        aggregation_window_ms: Debounce window for batching reads
        concurrency: Maximum simultaneous transport calls per manager
        timeout_seconds: Transport timeout
        response_type: Declared response type of entity requests
        discipline: Promotion order of queued requests
    """

    base_url: str = DEFAULT_BASE_URL
    bunch_size: int = DEFAULT_BUNCH_SIZE
    aggregation_window_ms: float = DEFAULT_AGGREGATION_WINDOW_MS
    concurrency: int = DEFAULT_CONCURRENCY
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    response_type: ResponseType = ResponseType.JSON
    discipline: QueueDiscipline = QueueDiscipline.FIFO

    def __post_init__(self) -> None:
        validate_path("base_url", self.base_url)
        validate_positive_int("bunch_size", self.bunch_size)
        validate_non_negative("aggregation_window_ms", self.aggregation_window_ms)
        validate_positive_int("concurrency", self.concurrency)
        validate_non_negative("timeout_seconds", self.timeout_seconds)
        object.__setattr__(
            self, "response_type", validate_response_type("response_type", self.response_type)
        )
        try:
            object.__setattr__(self, "discipline", QueueDiscipline(self.discipline))
        except ValueError:
            raise ValidationError(
                "discipline", self.discipline, "Expected 'fifo' or 'lifo'"
            ) from None

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> "FetchSettings":
        """
        Build settings from ``SCENE_FETCH_*`` environment variables.

        Explicit keyword overrides win over the environment; unset values keep
        their defaults.

        Args:
            environ: Mapping to read instead of ``os.environ``
            **overrides: Field values taking precedence

        Raises:
            ValidationError: If a variable cannot be converted
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        conversions: dict[str, tuple[str, type]] = {
            "base_url": ("BASE_URL", str),
            "bunch_size": ("BUNCH_SIZE", int),
            "aggregation_window_ms": ("AGGREGATION_WINDOW_MS", float),
            "concurrency": ("CONCURRENCY", int),
            "timeout_seconds": ("TIMEOUT", float),
            "discipline": ("QUEUE_DISCIPLINE", str),
        }
        for name, (suffix, convert) in conversions.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw is None or raw == "":
                continue
            try:
                values[name] = convert(raw)
            except ValueError:
                raise ValidationError(
                    ENV_PREFIX + suffix, raw, f"Expected {convert.__name__}"
                ) from None

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def as_dict(self) -> dict[str, Any]:
        """Serialize for display."""
        return {
            "base_url": self.base_url,
            "bunch_size": self.bunch_size,
            "aggregation_window_ms": self.aggregation_window_ms,
            "concurrency": self.concurrency,
            "timeout_seconds": self.timeout_seconds,
            "response_type": self.response_type.value,
            "discipline": self.discipline.value,
        }

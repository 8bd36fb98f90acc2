"""Debounced batching of single-key reads into bounded bunches."""

import asyncio
import logging
from collections.abc import Callable

DEFAULT_BUNCH_SIZE = 500
DEFAULT_AGGREGATION_WINDOW_MS = 200


def split_bunches(keys: list[str], bunch_size: int) -> list[list[str]]:
    """
    Split keys into consecutive bunches of at most ``bunch_size``.

    Example:
        >>> split_bunches(["a", "b", "c"], 2)
        [['a', 'b'], ['c']]
    """
    return [keys[i : i + bunch_size] for i in range(0, len(keys), bunch_size)]


class Aggregator:
    """
    Collects keys raised within an aggregation window.

    Each call to ``add`` (re)starts a debounce timer. When the timer expires,
    the buffer is drained into bunches of at most ``bunch_size`` keys and each
    bunch is handed to ``on_bunch``. After the last bunch ``on_flushed`` runs
    (the manager uses it to pump the dispatcher).

    Args:
        on_bunch: Called with each bunch, in drain order
        on_flushed: Called once after a flush that produced bunches
        bunch_size: Maximum number of keys per bunch
        window_ms: Debounce window in milliseconds
        logger: Logger for flush events
    """

    def __init__(
        self,
        on_bunch: Callable[[list[str]], None],
        on_flushed: Callable[[], None] | None = None,
        bunch_size: int = DEFAULT_BUNCH_SIZE,
        window_ms: float = DEFAULT_AGGREGATION_WINDOW_MS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._on_bunch = on_bunch
        self._on_flushed = on_flushed
        self.bunch_size = bunch_size
        self.window_ms = window_ms
        self.logger = logger or logging.getLogger(__name__)

        self._buffer: list[str] = []
        self._timer: asyncio.TimerHandle | None = None

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def scheduled(self) -> bool:
        """True while a flush timer is armed."""
        return self._timer is not None

    def add(self, keys: list[str]) -> None:
        """Buffer keys and restart the debounce timer."""
        if not keys:
            return
        self._buffer.extend(keys)

        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.window_ms / 1000, self.flush)

    def flush(self) -> int:
        """
        Drain the buffer into bunches now.

        Returns:
            Number of bunches produced
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if not self._buffer:
            return 0

        keys = self._buffer
        self._buffer = []
        bunches = split_bunches(keys, self.bunch_size)
        self.logger.debug("Flushing %d key(s) into %d bunch(es)", len(keys), len(bunches))
        for bunch in bunches:
            self._on_bunch(bunch)

        if self._on_flushed is not None:
            self._on_flushed()
        return len(bunches)

    def cancel(self) -> None:
        """Disarm the timer and drop buffered keys."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._buffer.clear()

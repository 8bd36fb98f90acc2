"""Registry of callers waiting on partially cached reads."""

import logging
from collections.abc import Callable, Iterable, Iterator

from .cache import EntityCache
from .models import WaitingDemand


class WaitingRegistry:
    """
    Tracks WaitingDemands and resolves them as the cache fills.

    Every demand leaves the registry exactly once: on completion, on forced
    (partial) completion, on failure of one of its keys, or on cancellation.

    Args:
        cache: Cache owned by the same manager
        logger: Logger receiving starvation warnings
    """

    def __init__(self, cache: EntityCache, logger: logging.Logger | None = None) -> None:
        self._cache = cache
        self._demands: list[WaitingDemand] = []
        self.logger = logger or logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._demands)

    def __contains__(self, demand: object) -> bool:
        return demand in self._demands

    def __iter__(self) -> Iterator[WaitingDemand]:
        return iter(list(self._demands))

    def register(self, demand: WaitingDemand) -> None:
        """Start tracking a demand."""
        self._demands.append(demand)

    def cancel(self, demand: WaitingDemand) -> bool:
        """
        Stop tracking a demand without calling it back.

        Returns:
            True if the demand was still waiting
        """
        if demand not in self._demands:
            return False
        self._demands.remove(demand)
        return True

    def reconcile(self, is_idle: Callable[[], bool]) -> int:
        """
        Move resolved keys into results and call back complete demands.

        A demand still missing keys while ``is_idle()`` reports that nothing
        is queued, in flight or buffered can never be resolved: it is
        completed with its partial results.

        Args:
            is_idle: True when no further fetch can resolve a key

        Returns:
            Number of demands called back
        """
        completed: list[WaitingDemand] = []

        for demand in list(self._demands):
            for key in list(demand.under_request):
                entry = self._cache.peek(key)
                if entry.is_present:
                    demand.results[key] = entry.value
                    demand.under_request.discard(key)

            if demand.complete:
                completed.append(demand)
            elif is_idle():
                self.logger.warning(
                    "Forcing completion of waiting demand with %d unresolved key(s): %s",
                    len(demand.under_request),
                    sorted(demand.under_request),
                )
                completed.append(demand)

        # Remove everything first so callbacks may re-enter the manager
        for demand in completed:
            self._demands.remove(demand)
        for demand in completed:
            demand.on_load(demand.results)

        return len(completed)

    def fail(self, keys: Iterable[str], error: Exception) -> int:
        """
        Fail every demand waiting on one of ``keys``.

        Args:
            keys: Keys whose fetch failed
            error: Error delivered to the affected demands

        Returns:
            Number of demands failed
        """
        failed_keys = set(keys)
        failed = [d for d in self._demands if d.under_request & failed_keys]

        for demand in failed:
            self._demands.remove(demand)
        for demand in failed:
            demand.on_error(error)

        return len(failed)

    def fail_all(self, error: Exception) -> int:
        """Fail every waiting demand with ``error``."""
        failed = self._demands
        self._demands = []
        for demand in failed:
            demand.on_error(error)
        return len(failed)

"""Progress reporting for response downloads."""

import logging

from .models import OnProgress, ProgressEvent


class ProgressTracker:
    """
    Observes progress events before they reach the caller.

    Computable events are logged as ``type: 42.5% [loaded/total]`` and the
    last known advancement per label is kept for inspection.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.last: dict[str, float] = {}

    def update(self, label: str, callback: OnProgress | None, event: ProgressEvent) -> None:
        """
        Record a progress event and forward it.

        Args:
            label: What is being downloaded (usually the request path)
            callback: The caller's progress callback, if any
            event: The progress event
        """
        if event.length_computable:
            advancement = round(event.loaded / event.total * 10000) / 100  # type: ignore[operator]
            self.last[label] = advancement
            self.logger.debug(
                "%s %s: %s%% [%d/%d]", label, event.type, advancement, event.loaded, event.total
            )

        if callback is not None:
            callback(event)

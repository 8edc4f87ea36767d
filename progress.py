"""Throughput reporting for long conversion runs."""

from __future__ import annotations

import logging
import time
from typing import Callable

LOGGER = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 10.0


class ProgressReporter:
    """Count started conversions and log a summary every ``interval_s``."""

    def __init__(
        self,
        interval_s: float = DEFAULT_INTERVAL_S,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval_s = interval_s
        self.page_count = 0
        self._clock = clock
        self._started_at = clock()
        self._window_start = self._started_at

    @property
    def elapsed_s(self) -> float:
        """Return seconds since the reporter was created."""

        return self._clock() - self._started_at

    def page_started(self) -> bool:
        """Record one conversion; return True when a summary was logged."""

        self.page_count += 1
        now = self._clock()
        if now - self._window_start < self.interval_s:
            return False
        self._window_start = now
        LOGGER.info("* * * Converted %d pages... * * *", self.page_count)
        return True

    def finish(self) -> None:
        LOGGER.info("All Done")
        LOGGER.info(
            "Total time elapsed: %d seconds for %d pages.",
            int(self.elapsed_s),
            self.page_count,
        )


__all__ = ["DEFAULT_INTERVAL_S", "ProgressReporter"]

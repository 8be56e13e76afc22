"""Per-build stage timing.

Each build owns one PerfMarkers instance, so concurrent builds in the
same process never overwrite each other's markers. Timings are for
diagnostics only and never influence control flow.
"""

import logging
import time
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class PerfMarkers:
    """Ordered stage-name -> elapsed-milliseconds mapping for one build."""

    def __init__(self) -> None:
        self._started: dict[str, float] = {}
        self.durations_ms: dict[str, float] = {}

    def start(self, label: str) -> None:
        self._started[label] = time.monotonic()
        logger.debug("[PERF] Starting %s", label)

    def stop(self, label: str) -> float:
        """Record and return the elapsed time for label, or 0 if never started."""
        started = self._started.pop(label, None)
        if started is None:
            return 0.0
        elapsed_ms = (time.monotonic() - started) * 1000
        self.durations_ms[label] = elapsed_ms
        logger.info("[PERF] %s completed in %dms", label, elapsed_ms)
        return elapsed_ms

    @contextmanager
    def measure(self, label: str) -> Iterator[None]:
        self.start(label)
        try:
            yield
        finally:
            self.stop(label)

    def snapshot(self) -> dict[str, float]:
        """Completed durations plus time elapsed so far for open markers."""
        now = time.monotonic()
        snap = dict(self.durations_ms)
        for label, started in self._started.items():
            snap[f"{label} (open)"] = (now - started) * 1000
        return snap

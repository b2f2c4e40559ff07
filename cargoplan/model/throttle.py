from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class RecomputeThrottle:
    """
    Rate-limited scheduler with a single pending slot (latest wins).

    ``request`` runs the job immediately once the interval has elapsed, taking
    the place of anything still pending; inside the interval the job replaces
    whatever was pending.
    ``poll`` runs the pending job once it is due, ``flush`` runs it now.
    """

    def __init__(self, interval: float = 0.016, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self.clock = clock
        self._last_run: Optional[float] = None
        self._pending: Optional[Callable[[], Any]] = None
        self.coalesced = 0

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def _due(self, now: float) -> bool:
        return self._last_run is None or now - self._last_run >= self.interval

    def _run(self, job: Callable[[], Any], now: float) -> Any:
        self._last_run = now
        return job()

    def request(self, job: Callable[[], Any]) -> bool:
        now = self.clock()
        if self._due(now):
            if self._pending is not None:
                self.coalesced += 1
                self._pending = None
            self._run(job, now)
            return True
        if self._pending is not None:
            self.coalesced += 1
        self._pending = job
        return False

    def poll(self) -> bool:
        if self._pending is None:
            return False
        now = self.clock()
        if not self._due(now):
            return False
        job, self._pending = self._pending, None
        self._run(job, now)
        return True

    def flush(self) -> bool:
        if self._pending is None:
            return False
        job, self._pending = self._pending, None
        self._run(job, self.clock())
        return True

    def cancel(self) -> None:
        self._pending = None

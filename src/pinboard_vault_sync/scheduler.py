"""One-shot timer for periodic syncs."""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Seconds; keeps an overdue sync from firing synchronously
MINIMUM_SYNC_DELAY = 0.02


def next_sync_delay(
    latest_sync_time: float,
    sync_interval: float,
    now: float,
    minimum: float = MINIMUM_SYNC_DELAY,
) -> float:
    """Seconds until the next sync is due, never less than ``minimum``."""
    return max(latest_sync_time + sync_interval - now, minimum)


class Scheduler:
    """Holds at most one armed timer on the running event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None and not self._handle.cancelled()

    def arm(self, delay: float, callback: Callable[[], None]) -> None:
        """Cancel any armed timer and call ``callback`` after ``delay`` seconds."""
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()

        def _fire() -> None:
            self._handle = None
            callback()

        self._handle = loop.call_later(delay, _fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

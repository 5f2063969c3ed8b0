"""Trailing-edge debouncer on the running asyncio loop.

Used to decouple what the user has typed into a search box from the value
that drives recomputation: each new call replaces the pending one, and only
the last callback fires once the delay has elapsed without another call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Run the most recently scheduled callback after *delay_s* seconds of quiet."""

    def __init__(self, delay_s: float) -> None:
        if delay_s < 0:
            raise ValueError(f"delay_s must be non-negative, got {delay_s!r}")
        self._delay_s = delay_s
        self._handle: asyncio.TimerHandle | None = None
        self._callback: Callable[[], None] | None = None

    @property
    def delay_s(self) -> float:
        return self._delay_s

    @property
    def pending(self) -> bool:
        return self._callback is not None

    def call(self, callback: Callable[[], None]) -> None:
        """Schedule *callback*, replacing any pending one.

        With a zero delay, or outside a running event loop, the callback
        runs immediately.
        """
        self.cancel()
        if self._delay_s == 0:
            callback()
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; applying debounced call immediately")
            callback()
            return
        self._callback = callback
        self._handle = loop.call_later(self._delay_s, self._fire)

    def flush(self) -> None:
        """Run the pending callback now, if any."""
        callback = self._callback
        self.cancel()
        if callback is not None:
            callback()

    def cancel(self) -> None:
        """Drop the pending callback without running it."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._callback = None

    def _fire(self) -> None:
        callback = self._callback
        self._handle = None
        self._callback = None
        if callback is not None:
            callback()

"""
Trailing-edge debouncer running on the asyncio event loop.

Collapses bursts of requests into a single call after a quiet period.
Each new request while a call is pending pushes it back, but never past
``max_wait`` after the first request of the burst, so a steady stream of
requests still produces a write every ``max_wait`` seconds.
"""

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Debounce *func* by *wait* seconds, bounded by *max_wait*."""

    def __init__(
        self,
        func: Callable[[], None],
        wait: float,
        max_wait: float | None = None,
    ):
        self._func = func
        self._wait = max(0.0, wait)
        self._max_wait = max_wait
        self._handle: asyncio.TimerHandle | None = None
        self._first_request: float = 0.0

    @property
    def pending(self) -> bool:
        """Return whether a call is scheduled but has not run yet."""
        return self._handle is not None

    def __call__(self) -> None:
        """Request a call; without a running loop the call happens right away."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.cancel()
            self._func()
            return
        now = loop.time()
        if self._handle is None:
            self._first_request = now
        else:
            self._handle.cancel()

        when = now + self._wait
        if self._max_wait is not None:
            when = min(when, self._first_request + self._max_wait)
        self._handle = loop.call_at(when, self._fire)

    def flush(self) -> None:
        """Run a pending call right now; no-op when nothing is pending."""
        if self._handle is None:
            return
        self.cancel()
        self._func()

    def cancel(self) -> None:
        """Drop a pending call without running it."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        try:
            self._func()
        except Exception:
            logger.exception("Debounced call failed")

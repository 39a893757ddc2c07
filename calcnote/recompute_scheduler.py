"""
CalcNote Recompute Scheduler - debounces recompute passes on the asyncio event loop.
"""

import asyncio
from typing import Callable, Optional

from . import constants


class RecomputeScheduler:
    """
    Single-shot debounce timer.

    Every call to ``schedule`` discards the pending timer and arms a new one,
    so the callback runs once, ``delay_ms`` after the last notification.
    """

    def __init__(self, callback: Callable[[], None], delay_ms: int = constants.DEBOUNCE_DELAY_MS,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.callback = callback
        self.delay_ms = delay_ms
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        """
        Restart the quiescence window.

        Must be called from the thread running the event loop.
        """
        loop = self._loop or asyncio.get_running_loop()
        self.cancel()
        self._handle = loop.call_later(self.delay_ms / 1000, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> bool:
        """Run a pending recompute right away; returns False when none was pending"""
        if self._handle is None:
            return False
        self.cancel()
        self.callback()
        return True

    def _fire(self) -> None:
        self._handle = None
        self.callback()

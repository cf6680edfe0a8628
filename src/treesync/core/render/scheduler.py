from __future__ import annotations

"""
Rebuild Scheduler.

Debounces row rebuilds: bursts of store commits arm a single deadline and
the callback runs once the window elapses without further requests. Works
either by polling against an injectable clock (tests, terminal loops) or
on top of a Tk-style timer API bound with bind_timer().
"""

import logging
import time
from typing import Any, Callable, Optional

from treesync.domain import constants as const

logger = logging.getLogger(__name__)

AfterFunc = Callable[[int, Callable[[], None]], Any]
AfterCancelFunc = Callable[[Any], None]


class RebuildScheduler:
    """
    Coalesces rebuild requests into one callback per quiet window.

    Args:
        callback: Work to run when the debounce window elapses.
        delay_ms: Length of the window in milliseconds.
        clock: Monotonic time source in seconds.
    """

    def __init__(
            self,
            callback: Callable[[], Any],
            *,
            delay_ms: int = const.DEFAULT_DEBOUNCE_MS,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if delay_ms < 0:
            raise ValueError(f"delay_ms cannot be negative, got {delay_ms}")
        self._callback = callback
        self.delay_ms = delay_ms
        self._clock = clock

        self._deadline: Optional[float] = None
        self._generation = 0
        self._runs = 0

        self._after: Optional[AfterFunc] = None
        self._after_cancel: Optional[AfterCancelFunc] = None
        self._timer_handle: Any = None

    @property
    def pending(self) -> bool:
        return self._deadline is not None

    @property
    def generation(self) -> int:
        """Number of requests seen; each one supersedes the previous."""
        return self._generation

    @property
    def runs(self) -> int:
        return self._runs

    def bind_timer(self, after: AfterFunc, after_cancel: AfterCancelFunc) -> None:
        """
        Drive the scheduler from a host timer (e.g. Tk's widget.after).

        Args:
            after: Function scheduling fn after ms, returning a handle.
            after_cancel: Function cancelling a handle returned by after.
        """
        self._after = after
        self._after_cancel = after_cancel

    def request(self) -> int:
        """
        (Re)arm the debounce window.

        Returns:
            int: Generation of this request.
        """
        self._generation += 1
        self._deadline = self._clock() + self.delay_ms / 1000.0

        if self._after is not None:
            self._cancel_timer()
            generation = self._generation
            self._timer_handle = self._after(self.delay_ms, lambda: self._fire(generation))
        return self._generation

    def poll(self) -> bool:
        """
        Run the callback if the window has elapsed.

        Returns:
            bool: Whether the callback ran.
        """
        if self._deadline is None or self._clock() < self._deadline:
            return False
        return self._run()

    def flush(self) -> bool:
        """Run a pending callback immediately."""
        if self._deadline is None:
            return False
        self._cancel_timer()
        return self._run()

    def cancel(self) -> None:
        """Drop any pending request without running it."""
        self._deadline = None
        self._cancel_timer()

    # -------------------------------------------------------------------------
    # PRIVATE HELPERS
    # -------------------------------------------------------------------------

    def _fire(self, generation: int) -> None:
        """Timer entry point; superseded generations are ignored."""
        if generation != self._generation or self._deadline is None:
            logger.debug(f"Skipping superseded rebuild generation {generation}")
            return
        self._timer_handle = None
        self._run()

    def _run(self) -> bool:
        self._deadline = None
        self._runs += 1
        try:
            self._callback()
        except Exception:
            logger.exception("Scheduled rebuild failed")
        return True

    def _cancel_timer(self) -> None:
        if self._timer_handle is not None and self._after_cancel is not None:
            try:
                self._after_cancel(self._timer_handle)
            except Exception:
                logger.debug("Timer handle was already gone", exc_info=True)
        self._timer_handle = None

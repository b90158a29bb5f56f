"""Cancellable, deadline-bound scrape context."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from .errors import CancellationError

log = logging.getLogger(__name__)

CancelCallback = Callable[[], object]


class ScrapeContext:
    """Handle passed to every collector for the duration of one scrape.

    Use it as a context manager: while active, a timer cancels the context
    when the deadline passes, which fires the registered callbacks (the
    database binding uses this to abort the in-flight statement).
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._deadline = None if timeout is None else time.monotonic() + max(0.0, timeout)
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[CancelCallback] = []
        self._timer: threading.Timer | None = None
        self.reason: str | None = None

    def __enter__(self) -> ScrapeContext:
        remaining = self.remaining()
        if remaining is not None:
            self._timer = threading.Timer(remaining, self.cancel, args=("deadline exceeded",))
            self._timer.daemon = True
            self._timer.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._cancelled.is_set():
                return
            self.reason = reason
            self._cancelled.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            self._run(callback)

    def check(self) -> None:
        """Raise CancellationError once cancelled or past the deadline."""
        if not self._cancelled.is_set() and self.expired():
            self.cancel("deadline exceeded")
        if self._cancelled.is_set():
            raise CancellationError(self.reason or "cancelled")

    def on_cancel(self, callback: CancelCallback) -> Callable[[], None]:
        """Register *callback* to run once on cancellation.

        Returns a function that unregisters it. A callback registered on an
        already-cancelled context runs immediately.
        """
        with self._lock:
            if not self._cancelled.is_set():
                self._callbacks.append(callback)
                return lambda: self._unregister(callback)
        self._run(callback)
        return lambda: None

    def _unregister(self, callback: CancelCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def _run(self, callback: CancelCallback) -> None:
        try:
            callback()
        except Exception:
            log.warning("cancel callback failed", exc_info=True)

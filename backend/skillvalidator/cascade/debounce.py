"""
Debounced callbacks.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional, Tuple


class Debouncer:
    """
    Delays a callback until calls stop arriving for ``delay_s`` seconds.

    Only the arguments of the last call are delivered. ``flush`` delivers a
    pending call immediately; ``cancel`` drops it.
    """

    def __init__(self, callback: Callable[..., Any], delay_s: float):
        self.callback = callback
        self.delay_s = delay_s
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[Tuple[Any, ...]] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def call(self, *args: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = args
            if self.delay_s <= 0:
                self._timer = None
            else:
                self._timer = threading.Timer(self.delay_s, self._fire)
                self._timer.daemon = True
                self._timer.start()
        if self.delay_s <= 0:
            self._fire()

    def flush(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        self._fire()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None

    def _fire(self) -> None:
        with self._lock:
            args, self._pending = self._pending, None
            self._timer = None
        if args is not None:
            self.callback(*args)

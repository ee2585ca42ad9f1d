"""Delayed-callback scheduling for the sync loop."""

from __future__ import annotations

import threading
from typing import Any, Callable, Protocol


class Scheduler(Protocol):
    def schedule(self, delay: float, callback: Callable[[], None]) -> Any: ...

    def cancel(self, handle: Any) -> None: ...


class ThreadingScheduler:
    """Run each callback once on a daemon ``threading.Timer``."""

    def schedule(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer

    def cancel(self, handle: threading.Timer | None) -> None:
        if handle is not None:
            handle.cancel()


__all__ = ["Scheduler", "ThreadingScheduler"]

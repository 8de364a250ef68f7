"""Delayed-callback schedulers.

The paste state machine never sleeps; it hands continuations to one of these.
"""

from __future__ import annotations

import threading
from typing import Callable

try:
    from PySide6.QtCore import QTimer
except Exception:  # pragma: no cover
    QTimer = None  # type: ignore


class _ThreadTimerHandle:
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler:
    """Runs callbacks on timer threads; for headless use without an event loop."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _ThreadTimerHandle:
        timer = threading.Timer(max(0.0, delay_s), callback)
        timer.daemon = True
        timer.start()
        return _ThreadTimerHandle(timer)


class _QtTimerHandle:
    def __init__(self, owner: "QtScheduler", timer: object) -> None:
        self._owner = owner
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()  # type: ignore[attr-defined]
        self._owner._forget(self._timer)


class QtScheduler:
    """Runs callbacks on the Qt event loop of the thread that created it."""

    def __init__(self) -> None:
        if QTimer is None:
            raise RuntimeError("PySide6 is not installed")
        self._live: set[object] = set()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> _QtTimerHandle:
        timer = QTimer()
        timer.setSingleShot(True)

        def _fire() -> None:
            self._forget(timer)
            callback()

        timer.timeout.connect(_fire)
        self._live.add(timer)
        timer.start(max(0, int(round(delay_s * 1000))))
        return _QtTimerHandle(self, timer)

    def _forget(self, timer: object) -> None:
        self._live.discard(timer)

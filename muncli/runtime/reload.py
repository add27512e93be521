"""
Mun Hot Reload Primitives

Polling filesystem watcher and a debouncer that coalesces bursts of change
notifications into a single callback.
"""

import os
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

from muncli.logging import get_logger

logger = get_logger(__name__)


class Debouncer:
    """
    Runs ``callback`` once, ``delay_ms`` after the last call to ``trigger``.

    Every trigger inside the window restarts the timer, so a burst of
    notifications results in exactly one callback.
    """

    def __init__(self, delay_ms: int, callback: Callable[[], None]) -> None:
        self.delay_ms = delay_ms
        self._callback = callback
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._closed = False

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def trigger(self) -> None:
        with self._lock:
            if self._closed:
                return
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.delay_ms / 1000.0, lambda: self._fire(timer))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self, timer: threading.Timer) -> None:
        with self._lock:
            # A trigger that raced this callback owns the newer timer
            if self._closed or self._timer is not timer:
                return
            self._timer = None
        self._callback()

    def cancel(self) -> None:
        """Drop any pending callback and refuse further triggers."""
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


def _iter_files(paths: Iterable[Path]) -> Iterable[Path]:
    for path in paths:
        if path.is_dir():
            for root, _dirs, files in os.walk(path):
                for name in files:
                    yield Path(root) / name
        elif path.exists():
            yield path


def snapshot(paths: Iterable[Path]) -> Dict[Path, int]:
    """Modification times (ns) of every file under ``paths``."""
    result: Dict[Path, int] = {}
    for file in _iter_files(paths):
        try:
            result[file] = file.stat().st_mtime_ns
        except OSError:
            # Removed between listing and stat
            continue
    return result


class PollingWatcher:
    """
    Background thread that polls ``paths`` and calls ``on_change`` whenever
    a file is added, removed or modified.
    """

    def __init__(
        self,
        paths: Iterable[Path],
        on_change: Callable[[], None],
        *,
        interval: float = 0.25,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.paths = [Path(p) for p in paths]
        self.interval = interval
        self._on_change = on_change
        self._stop = stop_event or threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state = snapshot(self.paths)

    def poll(self) -> bool:
        """Take one snapshot; notify and return True if anything changed."""
        current = snapshot(self.paths)
        if current == self._state:
            return False
        self._state = current
        logger.debug("watch_change_detected", extra={"paths": [str(p) for p in self.paths]})
        self._on_change()
        return True

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.poll()

    def start(self) -> "PollingWatcher":
        self._thread = threading.Thread(target=self._run, name="mun-watcher", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval * 4)
        self._thread = None

"""
Mun Runtime Handle

Builds and owns a hot-reloadable execution runtime for one compiled library.
Lookups and invocations share a read lock; reloads take the write lock, so a
reload can never overlap a call into the library.
"""

import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional, Union

from muncli.errors import RuntimeLaunchError
from muncli.logging import get_logger, log_extra
from muncli.runtime.reload import Debouncer, PollingWatcher
from muncli.runtime.types import FunctionDefinition, NativeType
from muncli.toolchain.interface import Library, LibraryLoader

logger = get_logger(__name__)

DEFAULT_DELAY_MS = 10
# Longest wait a threading.Timer accepts
MAX_DELAY_MS = int(threading.TIMEOUT_MAX * 1000)


def parse_delay(value: Union[str, int]) -> int:
    """Parse a debounce delay in milliseconds."""
    if isinstance(value, int) and not isinstance(value, bool):
        delay = value
    else:
        text = str(value).strip()
        if not (text.isascii() and text.isdigit()):
            raise RuntimeLaunchError(
                f"invalid delay '{value}': expected a non-negative number of milliseconds",
                metadata={"delay": str(value)},
            )
        delay = int(text)
    if delay < 0:
        raise RuntimeLaunchError(
            f"invalid delay '{value}': expected a non-negative number of milliseconds",
            metadata={"delay": str(value)},
        )
    if delay > MAX_DELAY_MS:
        raise RuntimeLaunchError(
            f"invalid delay '{value}': must be at most {MAX_DELAY_MS} ms",
            metadata={"delay": str(value)},
        )
    return delay


class ReadWriteLock:
    """Many concurrent readers or one writer; writers wait for readers to drain."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Generator[None, None, None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Generator[None, None, None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class RuntimeHandle:
    """
    Single owner of a loaded library and its hot-reload machinery.

    Attributes:
        library_path: Path of the library on disk
        delay_ms: Debounce window for change notifications
        reload_count: Number of successful reloads
    """

    def __init__(self, library_path: Path, loader: LibraryLoader, library: Library, delay_ms: int) -> None:
        self.library_path = library_path
        self.delay_ms = delay_ms
        self.reload_count = 0
        self._loader = loader
        self._library = library
        self._lock = ReadWriteLock()
        self._debouncer = Debouncer(delay_ms, self.reload)
        self._watcher: Optional[PollingWatcher] = None
        self._closed = False

    # Lookup / invocation

    def get_function_definition(self, name: str) -> Optional[FunctionDefinition]:
        with self._lock.read():
            return self._library.get_function_definition(name)

    def invoke(self, definition: FunctionDefinition, native_type: Optional[NativeType]) -> Any:
        with self._lock.read():
            return self._library.invoke(definition, native_type)

    # Hot reload

    def notify_changed(self) -> None:
        """Report a change to the library file; reloads after the debounce window."""
        self._debouncer.trigger()

    def reload(self) -> bool:
        """
        Replace the loaded library with a fresh load from disk.

        A failed load keeps the previous library active.
        """
        start = time.time()
        try:
            fresh = self._loader.load(self.library_path)
        except Exception as exc:
            logger.warning(
                "library_reload_failed",
                extra=log_extra(library=self.library_path, error=str(exc)),
            )
            return False
        with self._lock.write():
            if self._closed:
                previous = fresh
            else:
                previous, self._library = self._library, fresh
                self.reload_count += 1
        previous.close()
        if previous is fresh:
            return False
        logger.info(
            "library_reloaded",
            extra=log_extra(
                library=self.library_path,
                duration_ms=int((time.time() - start) * 1000),
                reload_count=self.reload_count,
            ),
        )
        return True

    def watch(self, interval: float = 0.25) -> "RuntimeHandle":
        """Start watching the library file for rebuilt artifacts."""
        if self._watcher is None:
            self._watcher = PollingWatcher([self.library_path], self.notify_changed, interval=interval).start()
        return self

    @property
    def watching(self) -> bool:
        return self._watcher is not None

    # Lifetime

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        self._debouncer.cancel()
        with self._lock.write():
            self._library.close()

    def __enter__(self) -> "RuntimeHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class RuntimeBuilder:
    """
    Configures and spawns a RuntimeHandle.

    Example:
        handle = RuntimeBuilder("target/mod.so").set_delay(25).spawn(loader)
    """

    def __init__(self, library_path: Union[str, Path]) -> None:
        self.library_path = Path(library_path)
        self.delay_ms = DEFAULT_DELAY_MS
        self.poll_interval = 0.25

    def set_delay(self, delay: Union[str, int]) -> "RuntimeBuilder":
        self.delay_ms = parse_delay(delay)
        return self

    def set_poll_interval(self, seconds: float) -> "RuntimeBuilder":
        self.poll_interval = seconds
        return self

    def spawn(self, loader: LibraryLoader, *, watch: bool = True) -> RuntimeHandle:
        """
        Load the library and start hot reloading.

        Raises:
            RuntimeLaunchError: if the library cannot be read or loaded
        """
        if not self.library_path.is_file():
            raise RuntimeLaunchError(
                f"library '{self.library_path}' does not exist or is not a file",
                metadata={"library": str(self.library_path)},
            )
        try:
            library = loader.load(self.library_path)
        except RuntimeLaunchError:
            raise
        except Exception as exc:
            raise RuntimeLaunchError(
                f"failed to load library '{self.library_path}': {exc}",
                metadata={"library": str(self.library_path)},
            ) from exc

        handle = RuntimeHandle(self.library_path, loader, library, self.delay_ms)
        if watch:
            handle.watch(self.poll_interval)
        logger.info(
            "runtime_spawned",
            extra=log_extra(library=self.library_path, delay_ms=self.delay_ms, watching=watch),
        )
        return handle

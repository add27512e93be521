"""
Mun Toolchain Interface

Defines the collaborators the driver dispatches to: the compiler, the
compile-and-watch loop, the language server and the library loader used by
the runtime.
"""

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from muncli.options import CompileConfig
from muncli.runtime.types import FunctionDefinition, NativeType


class Library(ABC):
    """
    A loaded compiled library.

    Implementations resolve function definitions by name and call functions,
    requesting the result in a given native representation.
    """

    @property
    @abstractmethod
    def path(self) -> Path:
        """Path the library was loaded from."""

    @abstractmethod
    def get_function_definition(self, name: str) -> Optional[FunctionDefinition]:
        """Return the definition of ``name``, or None if it is not exported."""

    @abstractmethod
    def invoke(self, definition: FunctionDefinition, native_type: Optional[NativeType]) -> Any:
        """
        Call ``definition`` with no arguments.

        ``native_type`` selects how the return value is decoded; None means
        the function returns nothing. Any failure is raised as an exception.
        """

    def close(self) -> None:
        """Release the library. Optional."""


class LibraryLoader(ABC):
    """Loads compiled libraries from disk."""

    @abstractmethod
    def load(self, path: Path) -> Library:
        """Load ``path``; raise on an unreadable or invalid library."""


class Toolchain(ABC):
    """
    Abstract base class for the external toolchain the driver controls.

    Example implementation:
        class MyToolchain(Toolchain):
            def compile_manifest(self, manifest, config):
                ...

            def compile_and_watch_manifest(self, manifest, config, stop_event):
                ...

            def run_language_server(self, stop_event):
                ...

            def library_loader(self):
                return MyLoader()
    """

    @abstractmethod
    def compile_manifest(self, manifest: Path, config: CompileConfig) -> bool:
        """Compile the project once. Returns True on success."""

    @abstractmethod
    def compile_and_watch_manifest(
        self,
        manifest: Path,
        config: CompileConfig,
        stop_event: threading.Event,
    ) -> bool:
        """Compile, then recompile on source changes until ``stop_event`` is set."""

    @abstractmethod
    def run_language_server(self, stop_event: threading.Event) -> bool:
        """Serve language information until the server exits or ``stop_event`` is set. Returns True on a clean exit."""

    @abstractmethod
    def library_loader(self) -> LibraryLoader:
        """Loader used by the runtime to open compiled libraries."""

"""External toolchain collaborators: compiler, language server and library loading."""

from muncli.toolchain.interface import Library, LibraryLoader, Toolchain

__all__ = ["Library", "LibraryLoader", "Toolchain"]

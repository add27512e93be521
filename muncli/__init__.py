"""
muncli: command-line driver for the Mun toolchain

Builds Mun projects (once or in watch mode), starts a hot-reloadable runtime
for a compiled library and invokes its entry point, runs the language server
and scaffolds new packages.
"""

__version__ = "0.1.0"
__all__ = [
    "__version__",
]

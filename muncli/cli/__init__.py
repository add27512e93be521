"""Command-line interface for the Mun toolchain."""

from muncli.cli.main import cli, main, run_with_args

__all__ = ["cli", "main", "run_with_args"]

"""
Mun CLI

Click-based command-line interface for the Mun toolchain.
Provides commands for building, running, serving and creating Mun packages.
"""

import functools
import sys
import threading
from typing import Iterable, Optional

import click
from rich.console import Console
from rich.markup import escape

from muncli import __version__
from muncli.build import build as build_project
from muncli.config import Config, get_config
from muncli.errors import MunError
from muncli.invoke import DEFAULT_ENTRY_POINT, invoke_entry_point
from muncli.logging import ExitStatus, get_logger, log_context, setup_logging
from muncli.manifest import MANIFEST_FILENAME
from muncli.options import compiler_options
from muncli.runtime.handle import DEFAULT_DELAY_MS, RuntimeBuilder
from muncli.scaffold import new_project
from muncli.toolchain.external import ExternalToolchain
from muncli.toolchain.interface import Toolchain

logger = get_logger(__name__)

console = Console()
err_console = Console(stderr=True)


def context_config(ctx: click.Context) -> Config:
    """Configuration for this invocation; the cached environment configuration unless one was injected."""
    if ctx.obj.get("config") is None:
        ctx.obj["config"] = get_config()
    return ctx.obj["config"]


def get_toolchain(ctx: click.Context) -> Toolchain:
    """Toolchain for this invocation; the external executables unless one was injected."""
    if ctx.obj.get("toolchain") is None:
        ctx.obj["toolchain"] = ExternalToolchain.from_config(context_config(ctx))
    return ctx.obj["toolchain"]


def get_stop_event(ctx: click.Context) -> threading.Event:
    if ctx.obj.get("stop_event") is None:
        ctx.obj["stop_event"] = threading.Event()
    return ctx.obj["stop_event"]


def reports_errors(func):
    """
    Turn a command's ExitStatus into the process exit code and report
    MunError failures as a single error line on stderr.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        ctx = click.get_current_context()
        with log_context(command=ctx.info_name):
            try:
                status = func(*args, **kwargs)
            except MunError as exc:
                logger.debug(
                    "command_failed",
                    exc_info=True,
                    extra={"category": exc.category, "metadata": exc.metadata},
                )
                err_console.print(f"[bold red]error:[/bold red] {escape(str(exc))}", highlight=False, soft_wrap=True)
                status = ExitStatus.ERROR
        ctx.exit(int(status))

    return wrapper


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.version_option(__version__, prog_name="mun")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose):
    """The Mun executable enables compiling and running standalone Mun code."""
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose

    if verbose:
        setup_logging(level="DEBUG")


# =============================================================================
# Build
# =============================================================================

@cli.command("build")
@click.option("--manifest-path", help=f"Path to {MANIFEST_FILENAME}")
@click.option(
    "--watch",
    is_flag=True,
    help="Run the compiler in watch mode. Watch input files and trigger recompilation on changes.",
)
@click.option("-O", "--opt-level", help="optimize with possible levels 0-3")
@click.option("--target", help="target triple for which code is compiled")
@click.option(
    "--color",
    type=click.Choice(["enable", "auto", "disable"]),
    help="color text in terminal",
)
@click.pass_context
@reports_errors
def build_command(ctx, manifest_path, watch, opt_level, target, color):
    """Compiles a local Mun file into a module."""
    config = context_config(ctx)
    options = compiler_options(
        opt_level=opt_level,
        target=target,
        color=color,
        env_color=config.terminal_color,
        out_dir=config.out_dir,
    )
    stop_event = get_stop_event(ctx)
    try:
        ok = build_project(
            get_toolchain(ctx),
            options,
            manifest_path=manifest_path,
            watch=watch,
            stop_event=stop_event,
        )
    except KeyboardInterrupt:
        stop_event.set()
        ok = watch
    return ExitStatus.from_bool(ok)


# =============================================================================
# Start
# =============================================================================

@cli.command("start")
@click.argument("library")
@click.option("--entry", default=DEFAULT_ENTRY_POINT, show_default=True, help="the function entry point to call on startup")
@click.option(
    "--delay",
    help=(
        "how much to delay received filesystem events (in ms). This allows bundling of identical "
        "events, e.g. when several writes to the same file are detected. A high delay will make "
        f"hot reloading less responsive. (defaults to {DEFAULT_DELAY_MS} ms)"
    ),
)
@click.pass_context
@reports_errors
def start_command(ctx, library, entry, delay):
    """Starts the runtime with the specified library and invokes function ENTRY."""
    config = context_config(ctx)
    builder = (
        RuntimeBuilder(library)
        .set_delay(delay if delay is not None else config.reload_delay_ms)
        .set_poll_interval(config.watch_poll_interval)
    )
    with log_context(library=library, entry=entry):
        with builder.spawn(get_toolchain(ctx).library_loader()) as handle:
            return invoke_entry_point(handle, entry, echo=click.echo)


# =============================================================================
# Language Server
# =============================================================================

@cli.command("language-server")
@click.pass_context
@reports_errors
def language_server_command(ctx):
    """Starts a Mun language server ready to serve language information about one or more projects."""
    stop_event = get_stop_event(ctx)
    try:
        ok = get_toolchain(ctx).run_language_server(stop_event)
    except KeyboardInterrupt:
        stop_event.set()
        ok = True
    return ExitStatus.from_bool(ok)


# =============================================================================
# New
# =============================================================================

@cli.command("new")
@click.argument("path")
@click.option("-q", "--quiet", is_flag=True, help="No output printed to stdout")
@click.pass_context
@reports_errors
def new_command(ctx, path, quiet):
    """Create a new Mun package at PATH."""
    manifest = new_project(path)
    if not quiet:
        console.print(f"[green]✓[/green] Created package at {escape(str(manifest.parent))}", highlight=False)
    return ExitStatus.SUCCESS


# =============================================================================
# Entry points
# =============================================================================

def run_with_args(args: Optional[Iterable[str]] = None, *, obj: Optional[dict] = None) -> ExitStatus:
    """
    Run the CLI with ``args`` (default: sys.argv[1:]) and return the outcome.

    Usage errors are printed the way click prints them and yield ExitStatus.ERROR.
    """
    try:
        code = cli.main(
            args=list(args) if args is not None else None,
            prog_name="mun",
            obj=obj if obj is not None else {},
            standalone_mode=False,
        )
    except click.ClickException as exc:
        exc.show()
        return ExitStatus.ERROR
    except click.Abort:
        err_console.print("Aborted!")
        return ExitStatus.ERROR
    if code is None:
        return ExitStatus.SUCCESS
    return ExitStatus.from_bool(code == 0)


def main() -> None:
    """Console script entry point."""
    try:
        config = get_config()
    except MunError as exc:
        err_console.print(f"[bold red]error:[/bold red] {escape(str(exc))}", highlight=False, soft_wrap=True)
        sys.exit(int(ExitStatus.ERROR))
    setup_logging(config.log_level, json_output=config.log_json)
    sys.exit(int(run_with_args()))


if __name__ == "__main__":
    main()

"""
Mun External Toolchain

Drives the external compiler and language-server executables.
Handles process spawning, output pass-through and cancellation.
"""

import os
import shlex
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from muncli.errors import CompileError, LanguageServerError
from muncli.logging import get_logger, log_extra
from muncli.options import CompileConfig
from muncli.runtime.reload import Debouncer, PollingWatcher
from muncli.toolchain.interface import LibraryLoader, Toolchain
from muncli.toolchain.native import NativeLibraryLoader

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Result from running an external command."""
    success: bool
    exit_code: Optional[int] = None
    duration_seconds: Optional[float] = None


def run_command(
    cmd: List[str],
    *,
    cwd: Optional[Path] = None,
    env: Optional[Dict[str, str]] = None,
) -> CommandResult:
    """
    Run a command attached to the current stdout/stderr.

    The compiler's diagnostics are passed through verbatim.

    Raises:
        CompileError: if the executable cannot be started
    """
    start_time = time.time()

    proc_env = os.environ.copy()
    if env:
        proc_env.update(env)

    logger.debug(
        "command_start",
        extra={"cmd": cmd[:3], "cwd": str(cwd) if cwd else None},
    )

    try:
        proc = subprocess.run(cmd, cwd=cwd, env=proc_env)
    except OSError as e:
        raise CompileError(
            f"failed to run '{cmd[0]}': {e}",
            metadata={"cmd": cmd[0]},
        ) from e

    return CommandResult(
        success=proc.returncode == 0,
        exit_code=proc.returncode,
        duration_seconds=time.time() - start_time,
    )


class ExternalToolchain(Toolchain):
    """
    Toolchain backed by external executables.

    Example:
        toolchain = ExternalToolchain(compiler_command="munc")
        toolchain.compile_manifest(Path("mun.toml"), config)
    """

    def __init__(
        self,
        *,
        compiler_command: str = "munc",
        language_server_command: str = "mun-language-server",
        poll_interval: float = 0.25,
        debounce_ms: int = 10,
        loader: Optional[LibraryLoader] = None,
    ) -> None:
        self.compiler_command = shlex.split(compiler_command)
        self.language_server_command = shlex.split(language_server_command)
        self.poll_interval = poll_interval
        self.debounce_ms = debounce_ms
        self._loader = loader

    @classmethod
    def from_config(cls, config: Any) -> "ExternalToolchain":
        return cls(
            compiler_command=config.compiler_command,
            language_server_command=config.language_server_command,
            poll_interval=config.watch_poll_interval,
            debounce_ms=config.reload_delay_ms,
        )

    def build_command(self, manifest: Path, config: CompileConfig) -> List[str]:
        """Command line for a single compiler invocation."""
        cmd = [
            *self.compiler_command,
            "build",
            "--manifest-path",
            str(manifest),
            "--opt-level",
            str(int(config.optimization_level)),
            "--target",
            config.target.triple,
            "--color",
            config.display_color.value,
        ]
        if config.out_dir is not None:
            cmd.extend(["--out-dir", str(config.out_dir)])
        return cmd

    def compile_manifest(self, manifest: Path, config: CompileConfig) -> bool:
        result = run_command(self.build_command(manifest, config), cwd=manifest.parent)
        logger.info(
            "compile_finished",
            extra=log_extra(
                manifest=manifest,
                success=result.success,
                exit_code=result.exit_code,
                duration_seconds=result.duration_seconds,
            ),
        )
        return result.success

    def watch_paths(self, manifest: Path) -> List[Path]:
        """Files whose changes trigger recompilation."""
        return [manifest, manifest.parent / "src"]

    def compile_and_watch_manifest(
        self,
        manifest: Path,
        config: CompileConfig,
        stop_event: threading.Event,
    ) -> bool:
        # Startup errors (e.g. a missing compiler) propagate from here
        self.compile_manifest(manifest, config)

        rebuild = threading.Event()
        debouncer = Debouncer(self.debounce_ms, rebuild.set)
        watcher = PollingWatcher(
            self.watch_paths(manifest),
            debouncer.trigger,
            interval=self.poll_interval,
            stop_event=stop_event,
        ).start()
        logger.info("watch_started", extra=log_extra(manifest=manifest))
        try:
            while not stop_event.is_set():
                if not rebuild.wait(self.poll_interval):
                    continue
                rebuild.clear()
                if stop_event.is_set():
                    break
                try:
                    self.compile_manifest(manifest, config)
                except CompileError as exc:
                    logger.error("watch_compile_failed", extra=log_extra(manifest=manifest, error=str(exc)))
        finally:
            debouncer.cancel()
            watcher.stop()
            logger.info("watch_stopped", extra=log_extra(manifest=manifest))
        return True

    def run_language_server(self, stop_event: threading.Event) -> bool:
        try:
            proc = subprocess.Popen(self.language_server_command)
        except OSError as e:
            raise LanguageServerError(
                f"failed to start language server '{self.language_server_command[0]}': {e}",
                metadata={"cmd": self.language_server_command[0]},
            ) from e

        logger.info("language_server_started", extra={"pid": proc.pid})
        stopped = False
        try:
            while proc.poll() is None:
                if stop_event.wait(self.poll_interval):
                    stopped = True
                    proc.terminate()
                    try:
                        proc.wait(timeout=5)
                    except subprocess.TimeoutExpired:
                        proc.kill()
                        proc.wait()
                    break
        finally:
            logger.info("language_server_stopped", extra={"exit_code": proc.returncode})
        return stopped or proc.returncode == 0

    def library_loader(self) -> LibraryLoader:
        if self._loader is None:
            self._loader = NativeLibraryLoader()
        return self._loader

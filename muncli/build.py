"""
Mun Build Orchestrator

Resolves the manifest and dispatches to a one-shot compile or to the
continuous compile-and-watch loop.
"""

import threading
from pathlib import Path
from typing import Optional, Union

from muncli.logging import get_logger, log_context, log_extra
from muncli.manifest import resolve_manifest
from muncli.options import CompileConfig
from muncli.toolchain.interface import Toolchain

logger = get_logger(__name__)


def build(
    toolchain: Toolchain,
    config: CompileConfig,
    *,
    manifest_path: Optional[Union[str, Path]] = None,
    watch: bool = False,
    cwd: Optional[Path] = None,
    stop_event: Optional[threading.Event] = None,
) -> bool:
    """
    Build the project in ``cwd`` (or the one ``manifest_path`` points at).

    In watch mode this only returns once ``stop_event`` is set.

    Returns:
        True if compilation succeeded

    Raises:
        ManifestError: if the manifest cannot be resolved
    """
    manifest = resolve_manifest(manifest_path, cwd)
    with log_context(manifest=str(manifest)):
        logger.info(
            "manifest_located",
            extra=log_extra(
                manifest=manifest,
                target=config.target.triple,
                opt_level=int(config.optimization_level),
                watch=watch,
            ),
        )
        if watch:
            return toolchain.compile_and_watch_manifest(manifest, config, stop_event or threading.Event())
        return toolchain.compile_manifest(manifest, config)

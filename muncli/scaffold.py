"""
Mun Project Scaffolding

Creates a new package directory with a manifest and an entry-point source file.
"""

import re
from pathlib import Path
from typing import Union

from muncli.errors import ScaffoldError
from muncli.logging import get_logger
from muncli.manifest import MANIFEST_FILENAME

logger = get_logger(__name__)

MANIFEST_TEMPLATE = """\
[package]
name = "{name}"
version = "0.1.0"
authors = []
"""

ENTRY_SOURCE = """\
pub fn main() -> i64 {
    1 + 1
}
"""


def package_name(path: Path) -> str:
    """Derive a package name from the directory name."""
    name = re.sub(r"[^A-Za-z0-9_-]+", "_", path.resolve().name).strip("_")
    return name or "package"


def new_project(path: Union[str, Path]) -> Path:
    """
    Create a new Mun package at ``path``.

    Returns:
        Path of the created manifest

    Raises:
        ScaffoldError: if a package already exists there or the files cannot be written
    """
    root = Path(path)
    manifest = root / MANIFEST_FILENAME
    if manifest.exists():
        raise ScaffoldError(
            f"destination '{root}' already contains a {MANIFEST_FILENAME}",
            metadata={"path": str(root)},
        )
    if root.exists() and not root.is_dir():
        raise ScaffoldError(f"destination '{root}' exists and is not a directory", metadata={"path": str(root)})

    try:
        (root / "src").mkdir(parents=True, exist_ok=True)
        manifest.write_text(MANIFEST_TEMPLATE.format(name=package_name(root)), encoding="utf-8")
        entry = root / "src" / "mod.mun"
        if not entry.exists():
            entry.write_text(ENTRY_SOURCE, encoding="utf-8")
    except OSError as exc:
        raise ScaffoldError(f"failed to create package at '{root}': {exc}", metadata={"path": str(root)}) from exc

    logger.info("package_created", extra={"manifest": str(manifest)})
    return manifest

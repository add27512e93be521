"""
Mun Manifest Locator

Finds the project manifest by searching a directory and its ancestors.
"""

from pathlib import Path
from typing import Optional, Union

from muncli.errors import ManifestError
from muncli.logging import get_logger

logger = get_logger(__name__)

MANIFEST_FILENAME = "mun.toml"


def find_manifest(directory: Union[str, Path]) -> Optional[Path]:
    """Find a Mun manifest file in the specified directory or one of its parents."""
    current: Optional[Path] = Path(directory).absolute()
    while current is not None:
        manifest_path = current / MANIFEST_FILENAME
        if manifest_path.exists():
            return manifest_path
        parent = current.parent
        current = parent if parent != current else None
    return None


def resolve_manifest(
    explicit: Optional[Union[str, Path]] = None,
    cwd: Optional[Path] = None,
) -> Path:
    """
    Resolve the manifest a build should use.

    An explicit path is canonicalized and must exist. Otherwise the manifest is
    searched for upwards from ``cwd`` (default: the current working directory).

    Raises:
        ManifestError: if the explicit path is invalid or no manifest is found
    """
    if explicit is not None:
        try:
            return Path(explicit).resolve(strict=True)
        except OSError as exc:
            raise ManifestError(
                f"'{explicit}' does not refer to a valid manifest path",
                metadata={"manifest": str(explicit)},
            ) from exc

    current_dir = Path(cwd) if cwd is not None else Path.cwd()
    manifest_path = find_manifest(current_dir)
    if manifest_path is None:
        raise ManifestError(
            f"could not find {MANIFEST_FILENAME} in '{current_dir}' or a parent directory",
            metadata={"cwd": str(current_dir)},
        )
    logger.debug("manifest_search_hit", extra={"manifest": str(manifest_path)})
    return manifest_path

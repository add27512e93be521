"""
Mun Native Library Loader

Loads compiled shared libraries with ctypes. Function signatures are read
from the type table the compiler writes next to the library
(``<library>.types.json``)::

    {
      "functions": [
        {"name": "main", "arg_types": [], "return_type": "core::i64"}
      ]
    }

The library is loaded from a temporary copy so the original file can be
rebuilt while the runtime is using it.
"""

import ctypes
import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from muncli.errors import RuntimeLaunchError
from muncli.logging import get_logger
from muncli.runtime.types import FunctionDefinition, NativeType, TypeInfo
from muncli.toolchain.interface import Library, LibraryLoader

logger = get_logger(__name__)

TYPE_TABLE_SUFFIX = ".types.json"


def type_table_path(library_path: Path) -> Path:
    return library_path.with_name(library_path.name + TYPE_TABLE_SUFFIX)


def read_type_table(path: Path) -> Dict[str, FunctionDefinition]:
    """Parse a type table into function definitions keyed by name."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise RuntimeLaunchError(f"missing type table '{path}'") from exc
    except (OSError, ValueError) as exc:
        raise RuntimeLaunchError(f"unreadable type table '{path}': {exc}") from exc

    functions = data.get("functions") if isinstance(data, dict) else None
    if not isinstance(functions, list):
        raise RuntimeLaunchError(f"type table '{path}' has no 'functions' list")

    definitions: Dict[str, FunctionDefinition] = {}
    for entry in functions:
        try:
            name = entry["name"]
            arg_types = tuple(TypeInfo.of(t) for t in entry.get("arg_types", []))
            ret = entry.get("return_type")
        except (KeyError, TypeError, AttributeError) as exc:
            raise RuntimeLaunchError(f"malformed function entry in '{path}': {entry!r}") from exc
        definitions[name] = FunctionDefinition(
            name=name,
            arg_types=arg_types,
            return_type=TypeInfo.of(ret) if ret else None,
        )
    return definitions


class NativeLibrary(Library):
    """A shared library loaded through ctypes."""

    def __init__(self, path: Path, cdll: Any, definitions: Dict[str, FunctionDefinition], copy_dir: Optional[Path]) -> None:
        self._path = path
        self._cdll = cdll
        self._definitions = definitions
        self._copy_dir = copy_dir

    @property
    def path(self) -> Path:
        return self._path

    def get_function_definition(self, name: str) -> Optional[FunctionDefinition]:
        return self._definitions.get(name)

    def invoke(self, definition: FunctionDefinition, native_type: Optional[NativeType]) -> Any:
        if definition.arg_types:
            raise TypeError(
                f"function '{definition.name}' expects {len(definition.arg_types)} argument(s), got 0"
            )
        try:
            func = getattr(self._cdll, definition.name)
        except AttributeError as exc:
            raise LookupError(f"symbol '{definition.name}' not found in '{self._path}'") from exc
        func.argtypes = []
        func.restype = native_type.ctype if native_type is not None else None
        return func()

    def close(self) -> None:
        # ctypes has no portable unload; dropping the reference is all we can do.
        self._cdll = None
        if self._copy_dir is not None:
            shutil.rmtree(self._copy_dir, ignore_errors=True)
            self._copy_dir = None


class NativeLibraryLoader(LibraryLoader):
    """Loads libraries via ctypes from a temporary copy."""

    def __init__(self, *, copy: bool = True) -> None:
        self.copy = copy

    def load(self, path: Path) -> Library:
        path = Path(path)
        definitions = read_type_table(type_table_path(path))

        copy_dir: Optional[Path] = None
        load_path = path
        if self.copy:
            copy_dir = Path(tempfile.mkdtemp(prefix="mun-runtime-"))
            load_path = copy_dir / path.name
            shutil.copy2(path, load_path)
        try:
            cdll = ctypes.CDLL(str(load_path))
        except OSError as exc:
            if copy_dir is not None:
                shutil.rmtree(copy_dir, ignore_errors=True)
            raise RuntimeLaunchError(f"invalid library '{path}': {exc}") from exc

        logger.debug("library_loaded", extra={"library": str(path), "functions": sorted(definitions)})
        return NativeLibrary(path, cdll, definitions, copy_dir)

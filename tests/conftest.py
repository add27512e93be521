import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Ensure repository root is on sys.path so the in-tree package imports cleanly.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from muncli.config import _reset_config_for_tests  # noqa: E402
from muncli.runtime.types import FunctionDefinition, NativeType, TypeInfo  # noqa: E402
from muncli.toolchain.interface import Library, LibraryLoader, Toolchain  # noqa: E402


class FakeLibrary(Library):
    """In-memory library: function name -> (definition, value or exception)."""

    def __init__(self, path: Path, functions: Optional[Dict[str, Any]] = None) -> None:
        self._path = path
        self.functions: Dict[str, Any] = dict(functions or {})
        self.calls: List[tuple] = []
        self.closed = False

    @property
    def path(self) -> Path:
        return self._path

    def get_function_definition(self, name: str) -> Optional[FunctionDefinition]:
        entry = self.functions.get(name)
        return entry[0] if entry else None

    def invoke(self, definition: FunctionDefinition, native_type: Optional[NativeType]) -> Any:
        self.calls.append((definition.name, native_type))
        _, result = self.functions[definition.name]
        if isinstance(result, BaseException):
            raise result
        return result

    def close(self) -> None:
        self.closed = True


class FakeLoader(LibraryLoader):
    """Returns a fresh FakeLibrary per load; ``fail`` makes the next loads raise."""

    def __init__(self, functions: Optional[Dict[str, Any]] = None) -> None:
        self.functions = dict(functions or {})
        self.loaded: List[FakeLibrary] = []
        self.fail: Optional[Exception] = None

    def load(self, path: Path) -> Library:
        if self.fail is not None:
            raise self.fail
        library = FakeLibrary(Path(path), self.functions)
        self.loaded.append(library)
        return library


class FakeToolchain(Toolchain):
    """Records calls instead of running external executables."""

    def __init__(self, *, compile_ok: bool = True, loader: Optional[FakeLoader] = None) -> None:
        self.compile_ok = compile_ok
        self.loader = loader or FakeLoader()
        self.compiled: List[tuple] = []
        self.watched: List[tuple] = []
        self.language_server_runs = 0

    def compile_manifest(self, manifest, config):
        self.compiled.append((manifest, config))
        return self.compile_ok

    def compile_and_watch_manifest(self, manifest, config, stop_event: threading.Event):
        self.watched.append((manifest, config, stop_event))
        return True

    def run_language_server(self, stop_event: threading.Event) -> bool:
        self.language_server_runs += 1
        return True

    def library_loader(self) -> LibraryLoader:
        return self.loader


def function(name: str, return_type: Optional[str] = None, arg_types=()) -> FunctionDefinition:
    return FunctionDefinition(
        name=name,
        arg_types=tuple(TypeInfo.of(t) for t in arg_types),
        return_type=TypeInfo.of(return_type) if return_type else None,
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "MUN_TERMINAL_COLOR",
        "MUN_LOG_LEVEL",
        "MUN_LOG_JSON",
        "MUN_OUT_DIR",
        "MUN_COMPILER",
        "MUN_LANGUAGE_SERVER",
        "MUN_WATCH_POLL_INTERVAL",
        "MUN_RELOAD_DELAY_MS",
    ):
        monkeypatch.delenv(name, raising=False)
    _reset_config_for_tests()
    yield
    _reset_config_for_tests()


@pytest.fixture
def library_file(tmp_path) -> Path:
    path = tmp_path / "mod.so"
    path.write_bytes(b"\x7fELF")
    return path


@pytest.fixture
def fake_loader() -> FakeLoader:
    return FakeLoader(
        {
            "main": (function("main", "core::i64"), 42),
            "flag": (function("flag", "core::bool"), True),
            "ratio": (function("ratio", "core::f64"), 0.5),
            "setup": (function("setup"), None),
            "point": (function("point", "mod::Point"), object()),
            "panics": (function("panics", "core::i64"), RuntimeError("panicked at 'boom'")),
        }
    )


@pytest.fixture
def fake_toolchain(fake_loader) -> FakeToolchain:
    return FakeToolchain(loader=fake_loader)


@pytest.fixture
def make_function():
    return function


@pytest.fixture
def make_loader():
    return FakeLoader


@pytest.fixture
def make_toolchain():
    return FakeToolchain

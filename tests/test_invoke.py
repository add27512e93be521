"""
Tests for entry-point invocation and result decoding.
"""

import pytest

from muncli.errors import EntryPointNotFoundError, InvocationError, UnsupportedReturnTypeError
from muncli.invoke import invoke_entry_point
from muncli.logging import ExitStatus
from muncli.runtime.handle import RuntimeBuilder
from muncli.runtime.types import NativeType


@pytest.fixture
def handle(library_file, fake_loader):
    with RuntimeBuilder(library_file).spawn(fake_loader, watch=False) as handle:
        yield handle


@pytest.fixture
def printed():
    return []


def test_default_entry_point_is_main(handle, printed):
    assert invoke_entry_point(handle, echo=printed.append) is ExitStatus.SUCCESS
    assert printed == ["42"]


def test_bool_entry_point_prints_true(handle, printed):
    invoke_entry_point(handle, "flag", echo=printed.append)
    assert printed == ["true"]


def test_float_entry_point(handle, printed):
    invoke_entry_point(handle, "ratio", echo=printed.append)
    assert printed == ["0.5"]


def test_void_entry_point_prints_nothing(handle, printed, fake_loader):
    assert invoke_entry_point(handle, "setup", echo=printed.append) is ExitStatus.SUCCESS
    assert printed == []
    assert fake_loader.loaded[0].calls == [("setup", None)]


def test_requested_representation_matches_return_type(handle, fake_loader):
    invoke_entry_point(handle, "flag", echo=lambda _: None)
    invoke_entry_point(handle, "ratio", echo=lambda _: None)
    invoke_entry_point(handle, "main", echo=lambda _: None)
    assert fake_loader.loaded[0].calls == [
        ("flag", NativeType.BOOL),
        ("ratio", NativeType.F64),
        ("main", NativeType.I64),
    ]


def test_missing_entry_point(handle, printed):
    with pytest.raises(EntryPointNotFoundError) as excinfo:
        invoke_entry_point(handle, "nope", echo=printed.append)
    assert str(excinfo.value) == "Failed to obtain entry point 'nope'"


def test_unsupported_return_type_is_refused_before_calling(handle, printed, fake_loader):
    with pytest.raises(UnsupportedReturnTypeError) as excinfo:
        invoke_entry_point(handle, "point", echo=printed.append)
    assert "mod::Point" in str(excinfo.value)
    assert excinfo.value.type_name == "mod::Point"
    assert fake_loader.loaded[0].calls == []
    assert printed == []


def test_native_failure_is_reported_as_invocation_error(handle, printed):
    with pytest.raises(InvocationError) as excinfo:
        invoke_entry_point(handle, "panics", echo=printed.append)
    assert "boom" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert printed == []


def test_void_failure_is_reported(library_file, make_loader, make_function, printed):
    loader = make_loader({"main": (make_function("main"), LookupError("symbol 'main' not found"))})
    with RuntimeBuilder(library_file).spawn(loader, watch=False) as handle:
        with pytest.raises(InvocationError) as excinfo:
            invoke_entry_point(handle, echo=printed.append)
    assert "symbol 'main' not found" in str(excinfo.value)

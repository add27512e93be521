"""
Tests for the mun command-line interface.
"""

import threading

import pytest
from click.testing import CliRunner

from muncli.cli.main import cli, run_with_args
from muncli.config import Config
from muncli.logging import ExitStatus
from muncli.manifest import MANIFEST_FILENAME
from muncli.options import DisplayColor, OptimizationLevel
from muncli.runtime.handle import RuntimeBuilder

TARGET = "x86_64-unknown-linux-gnu"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def obj(fake_toolchain):
    return {"toolchain": fake_toolchain, "config": Config()}


@pytest.fixture
def project(tmp_path):
    (tmp_path / MANIFEST_FILENAME).write_text('[package]\nname = "demo"\n')
    (tmp_path / "src").mkdir()
    return tmp_path


@pytest.fixture
def spawned(monkeypatch):
    """Handles spawned by the start command, in order."""
    handles = []
    original = RuntimeBuilder.spawn

    def recording_spawn(builder, loader, **kwargs):
        handle = original(builder, loader, **kwargs)
        handles.append(handle)
        return handle

    monkeypatch.setattr(RuntimeBuilder, "spawn", recording_spawn)
    return handles

def build_args(project, *extra):
    return ["build", "--manifest-path", str(project / MANIFEST_FILENAME), "--target", TARGET, *extra]


class TestBuild:
    def test_success(self, runner, obj, project, fake_toolchain):
        result = runner.invoke(cli, build_args(project), obj=obj)
        assert result.exit_code == 0
        manifest, options = fake_toolchain.compiled[0]
        assert manifest == (project / MANIFEST_FILENAME).resolve()
        assert options.optimization_level is OptimizationLevel.DEFAULT
        assert options.target.triple == TARGET

    def test_compile_failure_exits_with_error(self, runner, project, make_toolchain):
        obj = {"toolchain": make_toolchain(compile_ok=False), "config": Config()}
        result = runner.invoke(cli, build_args(project), obj=obj)
        assert result.exit_code == 1

    def test_opt_level(self, runner, obj, project, fake_toolchain):
        result = runner.invoke(cli, build_args(project, "-O", "3"), obj=obj)
        assert result.exit_code == 0
        assert fake_toolchain.compiled[0][1].optimization_level is OptimizationLevel.AGGRESSIVE

    def test_unsupported_opt_level(self, runner, obj, project, fake_toolchain):
        result = runner.invoke(cli, build_args(project, "--opt-level", "4"), obj=obj)
        assert result.exit_code == 1
        assert "Only optimization levels 0-3 are supported" in result.output
        assert fake_toolchain.compiled == []

    def test_color_flag_wins_over_environment(self, runner, project, fake_toolchain):
        obj = {"toolchain": fake_toolchain, "config": Config(terminal_color="enable")}
        result = runner.invoke(cli, build_args(project, "--color", "disable"), obj=obj)
        assert result.exit_code == 0
        assert fake_toolchain.compiled[0][1].display_color is DisplayColor.DISABLE

    def test_color_from_environment(self, runner, project, fake_toolchain):
        obj = {"toolchain": fake_toolchain, "config": Config(terminal_color="enable")}
        runner.invoke(cli, build_args(project), obj=obj)
        assert fake_toolchain.compiled[0][1].display_color is DisplayColor.ENABLE

    def test_environment_configuration_is_used_without_injected_config(self, runner, project, fake_toolchain, monkeypatch):
        monkeypatch.setenv("MUN_TERMINAL_COLOR", "disable")
        result = runner.invoke(cli, build_args(project), obj={"toolchain": fake_toolchain})
        assert result.exit_code == 0
        assert fake_toolchain.compiled[0][1].display_color is DisplayColor.DISABLE

    def test_invalid_color_flag_is_a_usage_error(self, runner, obj, project, fake_toolchain):
        result = runner.invoke(cli, build_args(project, "--color", "sometimes"), obj=obj)
        assert result.exit_code == 2
        assert fake_toolchain.compiled == []

    def test_missing_manifest(self, runner, obj, tmp_path):
        result = runner.invoke(
            cli, ["build", "--manifest-path", str(tmp_path / "nope" / MANIFEST_FILENAME), "--target", TARGET], obj=obj
        )
        assert result.exit_code == 1
        assert "does not refer to a valid manifest path" in result.output

    def test_watch_uses_shared_stop_event(self, runner, project, fake_toolchain):
        stop = threading.Event()
        obj = {"toolchain": fake_toolchain, "config": Config(), "stop_event": stop}
        result = runner.invoke(cli, build_args(project, "--watch"), obj=obj)
        assert result.exit_code == 0
        assert fake_toolchain.watched[0][2] is stop


class TestStart:
    def test_prints_boolean_result(self, runner, obj, library_file):
        result = runner.invoke(cli, ["start", str(library_file), "--entry", "flag"], obj=obj)
        assert result.exit_code == 0
        assert result.stdout == "true\n"

    def test_default_entry_point(self, runner, obj, library_file):
        result = runner.invoke(cli, ["start", str(library_file)], obj=obj)
        assert result.exit_code == 0
        assert result.stdout == "42\n"

    def test_float_result(self, runner, obj, library_file):
        result = runner.invoke(cli, ["start", str(library_file), "--entry", "ratio"], obj=obj)
        assert result.stdout == "0.5\n"

    def test_void_entry_prints_nothing(self, runner, obj, library_file):
        result = runner.invoke(cli, ["start", str(library_file), "--entry", "setup"], obj=obj)
        assert result.exit_code == 0
        assert result.stdout == ""

    def test_unsupported_return_type(self, runner, obj, library_file, fake_loader):
        result = runner.invoke(cli, ["start", str(library_file), "--entry", "point"], obj=obj)
        assert result.exit_code == 1
        assert "Only native Mun return types are supported for entry points" in result.output
        assert "mod::Point" in result.output
        assert fake_loader.loaded[0].calls == []

    def test_missing_entry_point(self, runner, obj, library_file):
        result = runner.invoke(cli, ["start", str(library_file), "--entry", "absent"], obj=obj)
        assert result.exit_code == 1
        assert "Failed to obtain entry point 'absent'" in result.output

    def test_entry_point_failure(self, runner, obj, library_file):
        result = runner.invoke(cli, ["start", str(library_file), "--entry", "panics"], obj=obj)
        assert result.exit_code == 1
        assert "boom" in result.output

    def test_invalid_delay(self, runner, obj, library_file, fake_loader):
        result = runner.invoke(cli, ["start", str(library_file), "--delay", "abc"], obj=obj)
        assert result.exit_code == 1
        assert "invalid delay" in result.output
        assert fake_loader.loaded == []

    def test_explicit_delay(self, runner, obj, library_file, spawned):
        result = runner.invoke(cli, ["start", str(library_file), "--delay", "25"], obj=obj)
        assert result.exit_code == 0
        assert spawned[0].delay_ms == 25

    def test_delay_defaults_to_configuration(self, runner, fake_toolchain, library_file, spawned):
        obj = {"toolchain": fake_toolchain, "config": Config(reload_delay_ms=30)}
        runner.invoke(cli, ["start", str(library_file)], obj=obj)
        assert spawned[0].delay_ms == 30

    def test_delay_too_long_for_a_timer(self, runner, obj, library_file, fake_loader):
        result = runner.invoke(cli, ["start", str(library_file), "--delay", "99999999999999999"], obj=obj)
        assert result.exit_code == 1
        assert "invalid delay" in result.output
        assert fake_loader.loaded == []

    def test_missing_library(self, runner, obj, tmp_path):
        result = runner.invoke(cli, ["start", str(tmp_path / "missing.so")], obj=obj)
        assert result.exit_code == 1
        assert "missing.so" in result.output

    def test_library_is_released(self, runner, obj, library_file, fake_loader):
        runner.invoke(cli, ["start", str(library_file)], obj=obj)
        assert fake_loader.loaded[0].closed


class TestLanguageServer:
    def test_runs_toolchain_server(self, runner, obj, fake_toolchain):
        result = runner.invoke(cli, ["language-server"], obj=obj)
        assert result.exit_code == 0
        assert fake_toolchain.language_server_runs == 1


class TestNew:
    def test_creates_package(self, runner, obj, tmp_path):
        target = tmp_path / "hello"
        result = runner.invoke(cli, ["new", str(target)], obj=obj)
        assert result.exit_code == 0
        assert "Created package" in result.output
        assert (target / MANIFEST_FILENAME).is_file()

    def test_quiet(self, runner, obj, tmp_path):
        result = runner.invoke(cli, ["new", "-q", str(tmp_path / "hello")], obj=obj)
        assert result.exit_code == 0
        assert result.stdout == ""

    def test_existing_package(self, runner, obj, project):
        result = runner.invoke(cli, ["new", str(project)], obj=obj)
        assert result.exit_code == 1
        assert "already contains" in result.output


class TestRunWithArgs:
    def test_success(self, obj, library_file):
        assert run_with_args(["start", str(library_file)], obj=obj) is ExitStatus.SUCCESS

    def test_failure(self, obj, library_file):
        assert run_with_args(["start", str(library_file), "--entry", "absent"], obj=obj) is ExitStatus.ERROR

    def test_usage_error(self, obj):
        assert run_with_args(["build", "--color", "sometimes"], obj=obj) is ExitStatus.ERROR

    def test_unknown_command(self, obj):
        assert run_with_args(["frobnicate"], obj=obj) is ExitStatus.ERROR

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "mun" in result.output

"""
Mun Compile Configuration

Maps command-line flags and environment values to a structured CompileConfig.
"""

import platform
import sys
from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path
from typing import Optional

from muncli.errors import ConfigurationError, UsageError


class OptimizationLevel(IntEnum):
    """Ordered optimization levels accepted by the compiler."""
    NONE = 0
    LESS = 1
    DEFAULT = 2
    AGGRESSIVE = 3


class DisplayColor(str, Enum):
    """Whether diagnostics are printed in color."""
    ENABLE = "enable"
    DISABLE = "disable"
    AUTO = "auto"


OPT_LEVEL_FLAGS = {
    "0": OptimizationLevel.NONE,
    "1": OptimizationLevel.LESS,
    "2": OptimizationLevel.DEFAULT,
    "3": OptimizationLevel.AGGRESSIVE,
}

SUPPORTED_TARGETS = (
    "x86_64-unknown-linux-gnu",
    "aarch64-unknown-linux-gnu",
    "x86_64-apple-darwin",
    "aarch64-apple-darwin",
    "x86_64-pc-windows-msvc",
    "aarch64-pc-windows-msvc",
)

_HOST_ARCH = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}

_HOST_OS = {
    "linux": "unknown-linux-gnu",
    "darwin": "apple-darwin",
    "win32": "pc-windows-msvc",
}


@dataclass(frozen=True)
class Target:
    """A validated target triple."""
    triple: str

    @classmethod
    def search(cls, triple: str) -> "Target":
        """Look up a target triple, failing if it is not supported."""
        if triple not in SUPPORTED_TARGETS:
            raise ConfigurationError(
                f"unknown target triple '{triple}'; supported targets: {', '.join(SUPPORTED_TARGETS)}",
                metadata={"target": triple},
            )
        return cls(triple)

    @classmethod
    def host_target(cls) -> "Target":
        """Target triple of the machine running the driver."""
        arch = _HOST_ARCH.get(platform.machine().lower())
        os_part = next((v for k, v in _HOST_OS.items() if sys.platform.startswith(k)), None)
        if arch is None or os_part is None:
            raise ConfigurationError(
                f"host platform '{platform.machine()}-{sys.platform}' is not a supported target",
            )
        return cls.search(f"{arch}-{os_part}")

    def __str__(self) -> str:
        return self.triple


@dataclass(frozen=True)
class CompileConfig:
    """Configuration handed to the compiler."""
    target: Target
    optimization_level: OptimizationLevel = OptimizationLevel.DEFAULT
    out_dir: Optional[Path] = None
    display_color: DisplayColor = DisplayColor.AUTO


def parse_optimization_level(value: Optional[str]) -> OptimizationLevel:
    if value is None:
        return OptimizationLevel.DEFAULT
    try:
        return OPT_LEVEL_FLAGS[value]
    except KeyError:
        raise UsageError(
            "Only optimization levels 0-3 are supported",
            metadata={"opt_level": value},
        ) from None


def resolve_display_color(flag: Optional[str], env_value: Optional[str]) -> DisplayColor:
    """
    Resolve color mode: explicit flag, then environment, then auto.

    Unknown values resolve to auto. Flag values are already restricted by the
    command-line parser, so in practice only environment values fall through.
    """
    value = flag if flag is not None else env_value
    if value == "enable":
        return DisplayColor.ENABLE
    if value == "disable":
        return DisplayColor.DISABLE
    return DisplayColor.AUTO


def compiler_options(
    opt_level: Optional[str] = None,
    target: Optional[str] = None,
    color: Optional[str] = None,
    env_color: Optional[str] = None,
    out_dir: Optional[Path] = None,
) -> CompileConfig:
    """Build a CompileConfig from command-line flags and the environment color override."""
    return CompileConfig(
        target=Target.search(target) if target is not None else Target.host_target(),
        optimization_level=parse_optimization_level(opt_level),
        out_dir=out_dir,
        display_color=resolve_display_color(color, env_color),
    )

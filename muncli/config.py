"""
Mun CLI Configuration

Pydantic-backed configuration loaded from environment variables.
Uses the MUN_ prefix for all environment variables.
"""

import os
import threading
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from muncli.errors import ConfigurationError


class Config(BaseModel):
    """
    Pydantic-backed configuration loaded from environment variables.

    Key env vars:
    - MUN_LOG_LEVEL (default: WARNING)
    - MUN_LOG_JSON (default: false)
    - MUN_TERMINAL_COLOR (enable | disable; anything else means auto)
    - MUN_OUT_DIR (optional compiler output directory)
    - MUN_COMPILER / MUN_LANGUAGE_SERVER (external executables)
    - MUN_WATCH_POLL_INTERVAL (seconds between filesystem polls)
    - MUN_RELOAD_DELAY_MS (default hot-reload debounce delay)
    """

    # Logging
    log_level: str = Field(default="WARNING")
    log_json: bool = Field(default=False)

    # Compilation
    terminal_color: Optional[str] = Field(default=None)
    out_dir: Optional[Path] = Field(default=None)
    compiler_command: str = Field(default="munc")

    # Language server
    language_server_command: str = Field(default="mun-language-server")

    # Watching / hot reload
    watch_poll_interval: float = Field(default=0.25, gt=0)
    reload_delay_ms: int = Field(default=10, ge=0)

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def _parse_number(name: str, default: str, cast):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{name} must be a number, got '{raw}'",
            metadata={"variable": name},
        ) from exc


def load_config() -> Config:
    """Load Mun CLI configuration from environment."""
    try:
        return Config(
            log_level=os.environ.get("MUN_LOG_LEVEL", "WARNING"),
            log_json=_parse_bool(os.environ.get("MUN_LOG_JSON")),
            terminal_color=os.environ.get("MUN_TERMINAL_COLOR") or None,
            out_dir=Path(v).expanduser() if (v := os.environ.get("MUN_OUT_DIR")) else None,
            compiler_command=os.environ.get("MUN_COMPILER", "munc"),
            language_server_command=os.environ.get("MUN_LANGUAGE_SERVER", "mun-language-server"),
            watch_poll_interval=_parse_number("MUN_WATCH_POLL_INTERVAL", "0.25", float),
            reload_delay_ms=_parse_number("MUN_RELOAD_DELAY_MS", "10", int),
        )
    except ValidationError as exc:
        raise ConfigurationError(f"invalid environment configuration: {exc}") from exc


# Singleton config instance (lazy loaded)
_config: Optional[Config] = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Get or create the singleton config instance."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_config()
    return _config


def _reset_config_for_tests() -> None:
    """Reset the global config cache (tests only)."""
    global _config
    with _config_lock:
        _config = None

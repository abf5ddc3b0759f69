"""Runner configuration.

Configuration is resolved in three layers, lowest to highest priority:

1. ``RunnerConfig`` field defaults
2. A TOML file: either a ``[tool.dotrun]`` table (e.g. in ``pyproject.toml``)
   or top-level keys in a dedicated ``dotrun.toml``
3. ``DOTRUN_<FIELD>`` environment variables
"""
from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dotrun.exceptions import EngineError

ENV_PREFIX = "DOTRUN_"
DEFAULT_CONFIG_FILE = "dotrun.toml"


class ConfigError(EngineError):
    """Raised when configuration loading or validation fails."""


class RunnerConfig(BaseModel):
    """Behavioural switches for ``DotRunner``.

    Attributes:
        ambiguous_transition: ``"first"`` follows the first declared edge when
            several match the signal; ``"error"`` fails the run.
        ambiguous_topology: ``"error"`` rejects graphs with several entry or
            exit candidates; ``"first"`` takes the first one.
        allow_rerun: When false, ``run()`` refuses to start once a previous
            run has reached the exit state.
        max_steps: Upper bound on performed states per run; ``None`` means
            unlimited.
        log_level: Level for ``setup_logging``.
        events_jsonl_path: Append every lifecycle event to this JSONL file.
        logfire_enabled: Mirror runs as Logfire spans.
    """

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    ambiguous_transition: Literal["first", "error"] = "first"
    ambiguous_topology: Literal["error", "first"] = "error"
    allow_rerun: bool = True
    max_steps: Optional[int] = Field(default=None, ge=1)
    log_level: str = "INFO"
    events_jsonl_path: Optional[Path] = None
    logfire_enabled: bool = False


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``DOTRUN_<FIELD>`` environment variables onto *data*.

    Unknown variables are ignored.  Values stay strings; Pydantic coerces them.
    """
    result = dict(data)
    for field_name in RunnerConfig.model_fields:
        value = os.environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if value is not None:
            result[field_name] = value
    return result


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as fh:
            raw = tomllib.load(fh)
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    tool_table = raw.get("tool", {}).get("dotrun")
    return dict(tool_table) if isinstance(tool_table, dict) else raw


def load_config(path: str | Path | None = None) -> RunnerConfig:
    """Load a ``RunnerConfig`` from *path* (optional) and the environment.

    Raises:
        ConfigError: If the file cannot be read or the values are invalid.
    """
    data: dict[str, Any] = {}
    if path is not None:
        data = _read_toml(Path(path))
    data = _apply_env_overrides(data)
    try:
        return RunnerConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid dotrun configuration: {exc}") from exc

"""Engine configuration loading helpers."""

from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import Any, Mapping

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError

CONFIG_FILE = Path.home() / ".config" / "onlinealter" / "config.toml"
PERCONA_ARGS_ENV = "PERCONA_ARGS"


class ToolOptions(BaseModel):
    """Settings for the pt-online-schema-change invocation."""

    binary: str = "pt-online-schema-change"
    execute: bool = True
    statistics: bool = True
    alter_foreign_keys_method: str | None = "auto"
    check_alter: bool = False
    chunk_size: int | None = None
    chunk_time: float | None = None
    max_load: str | None = None
    critical_load: str | None = None
    global_args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    verbose: bool = True
    tail_size: int = Field(default=50, ge=1)
    error_log: Path | None = None
    enabled_by_default: bool = True
    terminate_grace: float = Field(default=5.0, ge=0)

    def extra_args(self, environ: Mapping[str, str] | None = None) -> tuple[str, ...]:
        """Configured flags followed by any ``PERCONA_ARGS`` flags."""

        env = os.environ if environ is None else environ
        args = list(self.global_args)
        from_env = env.get(PERCONA_ARGS_ENV, "").strip()
        if from_env:
            args.extend(shlex.split(from_env))
        return tuple(args)

    def with_dry_run(self) -> ToolOptions:
        return self.model_copy(update={"execute": False})


class EngineConfig(BaseModel):
    """Shape of the engine configuration file."""

    connection: dict[str, Any] = Field(default_factory=dict)
    tool: ToolOptions = Field(default_factory=ToolOptions)


def load_config(path: Path | None = None) -> EngineConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    target = path or CONFIG_FILE
    try:
        with target.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError:
        return EngineConfig()
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {target}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read {target}: {exc}") from exc

    data: dict[str, object] = {}
    connection = raw.get("connection")
    if isinstance(connection, dict):
        data["connection"] = connection
    tool = raw.get("tool")
    if isinstance(tool, dict):
        data["tool"] = tool
    try:
        return EngineConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {target}: {exc}") from exc


__all__ = ["CONFIG_FILE", "EngineConfig", "PERCONA_ARGS_ENV", "ToolOptions", "load_config"]

"""Unified configuration via pydantic-settings."""

from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from lazywire.exceptions import ConfigError
from lazywire.plugins.credentials import expand_env_markers

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LazywireConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LAZYWIRE_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Plugin specs (spec_files is comma-separated in the environment)
    spec_files: Annotated[list[Path], NoDecode] = []
    overrides_file: Path | None = None
    plugin_overrides: dict[str, dict[str, Any]] = {}
    default_lazy: bool = False
    plugin_package: str | None = None

    # Build steps
    lockfile_path: Path = Path("lazywire-lock.json")

    # Keymaps
    leader: str = " "
    keymap_noremap: bool = True
    keymap_silent: bool = False

    # Logging
    log_level: str = "INFO"
    log_dir: Path | None = None
    log_max_bytes: int = 10_485_760
    log_backup_count: int = 5

    @field_validator("spec_files", mode="before")
    @classmethod
    def parse_spec_files(cls, v: list[Path] | str | Path) -> list[Path]:
        if isinstance(v, Path):
            return [v]
        if isinstance(v, str):
            return [Path(p.strip()) for p in v.split(",") if p.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"unknown log level: {v}")
        return level

    @field_validator("leader")
    @classmethod
    def leader_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("leader must not be empty")
        return v

    def load_overrides(self) -> dict[str, dict[str, Any]]:
        """Per-plugin option overrides; inline values win over the overrides file.

        ``{"$env": NAME}`` values become deferred credentials, as in plugin opts.
        """
        overrides: dict[str, dict[str, Any]] = {}
        if self.overrides_file is not None:
            try:
                data = yaml.safe_load(self.overrides_file.read_text()) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(
                    f"Cannot read overrides file {self.overrides_file}: {e}"
                ) from e
            if not isinstance(data, dict):
                raise ConfigError(
                    f"overrides file must contain a mapping: {self.overrides_file}"
                )
            for identifier, opts in data.items():
                overrides[str(identifier)] = dict(opts or {})
        for identifier, opts in self.plugin_overrides.items():
            overrides[identifier] = {**overrides.get(identifier, {}), **opts}
        return {
            identifier: {key: expand_env_markers(value) for key, value in opts.items()}
            for identifier, opts in overrides.items()
        }

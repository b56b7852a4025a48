"""Settings loading.

Settings come from an optional ``pnpm-config-deps.toml`` at the workspace
root, read with tomlkit, and are overridden by CLI options::

    config-dependencies = ["@savvy-web/silk"]
    dependencies = ["effect", "@savvy-web/*"]
    update-pnpm = true
    run = ["pnpm lint:fix"]
    changesets = true
    log-level = "info"
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from tomlkit.exceptions import TOMLKitError

from .errors import ConfigError

SETTINGS_FILE = "pnpm-config-deps.toml"


class Settings(BaseModel):
    """What to update and how."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    config_dependencies: list[str] = Field(default_factory=list, alias="config-dependencies")
    dependencies: list[str] = Field(default_factory=list)
    update_pnpm: bool = Field(default=True, alias="update-pnpm")
    run: list[str] = Field(default_factory=list)
    changesets: bool = True
    log_level: Literal["info", "debug"] = Field(default="info", alias="log-level")

    @model_validator(mode="after")
    def _something_to_do(self) -> Settings:
        if not self.config_dependencies and not self.dependencies and not self.update_pnpm:
            raise ValueError(
                "Must specify at least one of: config-dependencies, dependencies, or update-pnpm"
            )
        return self

    @property
    def debug(self) -> bool:
        return self.log_level == "debug"


def parse_multiline_input(value: str | list[str] | None) -> list[str]:
    """Normalize a list input: trim lines, drop blanks and ``#`` comments.

    Accepts either a newline-separated string or a list of strings.
    """
    if not value:
        return []
    lines = value.splitlines() if isinstance(value, str) else [str(v) for v in value]
    return [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]


def load_settings_file(root: Path) -> dict[str, Any]:
    """Read raw settings from the workspace's settings file, if any."""
    path = root / SETTINGS_FILE
    if not path.exists():
        return {}
    try:
        doc = tomlkit.parse(path.read_text(encoding="utf-8"))
    except (OSError, TOMLKitError) as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    return doc.unwrap()


def load_settings(root: Path, **overrides: Any) -> Settings:
    """Merge the settings file with CLI overrides and validate.

    Overrides set to None (or empty lists) leave the file value in place.
    Keys use either the file spelling (``update-pnpm``) or the Python
    spelling (``update_pnpm``).

    Raises:
        ConfigError: If the merged settings are invalid.
    """
    raw = load_settings_file(root)
    for key, value in overrides.items():
        if value is None or value == [] or value == ():
            continue
        raw.pop(key.replace("_", "-"), None)
        raw[key] = value

    for key in ("config-dependencies", "config_dependencies", "dependencies", "run"):
        if key in raw:
            raw[key] = parse_multiline_input(raw[key])

    try:
        return Settings.model_validate(raw)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in e['loc']) or 'settings'}: {e['msg']}" for e in exc.errors()
        )
        raise ConfigError(
            f"Invalid settings: {errors}", hint=f"Check {SETTINGS_FILE} and the command options."
        ) from exc

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from pretty_autotest.runtime.debounce import DEFAULT_PATTERN

DEFAULT_CONFIG_NAME = ".pta.yaml"


class ConfigError(RuntimeError):
    """Raised when a settings file cannot be read or validated."""


class Settings(BaseModel):
    watch_dir: Path = Path("./")
    test_tool: str = "go"
    test_args: list[str] = Field(default_factory=list)
    pattern: str = DEFAULT_PATTERN
    recursive: bool = True
    verbose: bool = False

    @field_validator("test_tool")
    @classmethod
    def validate_test_tool(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("test_tool must not be empty")
        return stripped

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Invalid regular expression: {exc}") from exc
        return value


def format_validation_error(exc: ValidationError) -> str:
    messages: list[str] = []
    for issue in exc.errors():
        loc = ".".join(str(part) for part in issue.get("loc", []))
        message = issue.get("msg", "validation error")
        messages.append(f"{loc}: {message}")
    return "\n".join(messages)


def parse_settings_data(data: dict[str, Any]) -> Settings:
    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(format_validation_error(exc)) from exc


def load_settings(path: Path) -> Settings:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read settings from {path}: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Settings at {path} must be a YAML object")
    return parse_settings_data(raw)


def resolve_settings(
    *,
    config_path: Path | None = None,
    watch_dir: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Merge defaults, the settings file and command-line values, in that order.

    Without an explicit *config_path*, ``.pta.yaml`` inside the watched
    directory is used when it exists.
    """
    if config_path is None:
        candidate = (watch_dir or Path("./")) / DEFAULT_CONFIG_NAME
        if candidate.is_file():
            config_path = candidate

    data: dict[str, Any] = {}
    if config_path is not None:
        data = load_settings(config_path).model_dump(exclude_unset=True)
    if watch_dir is not None:
        data["watch_dir"] = watch_dir
    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value
    return parse_settings_data(data)

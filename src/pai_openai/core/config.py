"""Application configuration management.

Handles loading and validating configuration from multiple sources:
    - TOML/JSON config file (``--config``, ``PAI_OPENAI_CONFIG``, ``~/.pai-openai.toml``)
    - Environment variables (OPENAI_* prefix)
    - Default values

CLI flags are applied on top by the entry point.

Key components:
    - AppConfig: Main configuration model
    - load_config(): Safe config loading with fallback
    - ConfigLoadResult: Metadata about config source
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from pai_openai.core.result import ConfigurationError

CONFIG_ENV_VAR = "PAI_OPENAI_CONFIG"
DEFAULT_BASE_URL = "https://api.openai.com/v1"

LogLevel = Literal["silent", "error", "warn", "info", "debug"]


class ContextConfig(BaseModel):
    """Byte budgets and filters for file context."""

    max_total_bytes: int = Field(
        default=900_000, gt=0, description="Maximum bytes for the combined context."
    )
    max_file_bytes: int = Field(
        default=512 * 1024, gt=0, description="Maximum bytes kept from any single file."
    )
    include_extensions: list[str] = Field(
        default_factory=lambda: [
            ".md",
            ".txt",
            ".json",
            ".yaml",
            ".yml",
            ".ts",
            ".tsx",
            ".js",
            ".jsx",
            ".py",
            ".rb",
            ".go",
            ".java",
        ],
        description="File extensions eligible for context.",
    )
    skip_oversized: bool = Field(
        default=False,
        description="Skip files larger than max_file_bytes instead of truncating them.",
    )

    @field_validator("include_extensions", mode="after")
    @classmethod
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]


@dataclass
class ConfigLoadResult:
    path: Path
    file_loaded: bool
    env_overrides: set[str]
    error: str | None = None


class AppConfig(BaseSettings):
    """Application-wide configuration."""

    model_config = SettingsConfigDict(
        env_prefix="OPENAI_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    api_key: SecretStr | None = Field(default=None, description="OpenAI API key.")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="API endpoint override.")
    model: str = Field(default="gpt-4.1", description="Model used when --model is omitted.")
    json_mode: bool = Field(default=True, description="Request JSON-object output by default.")
    timeout_ms: int = Field(default=180_000, gt=0, description="Request timeout in milliseconds.")
    log_level: LogLevel = Field(default="info", description="Log level for pai-openai output.")
    context: ContextConfig = Field(default_factory=ContextConfig)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            lowered = v.strip().lower()
            return "warn" if lowered == "warning" else lowered
        return v

    @field_validator("base_url", mode="before")
    @classmethod
    def default_empty_base_url(cls, v: Any) -> Any:
        # OPENAI_BASE_URL="" means "use the default endpoint".
        if isinstance(v, str) and not v.strip():
            return DEFAULT_BASE_URL
        return v

    @property
    def has_credential(self) -> bool:
        return self.api_key is not None and bool(self.api_key.get_secret_value())

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
    ]:
        # Ensure environment variables override config file entries.
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)


def _resolve_config_path(config_path: Path | None, env_vars: Mapping[str, str]) -> Path:
    candidate = config_path or env_vars.get(CONFIG_ENV_VAR) or (Path.home() / ".pai-openai.toml")
    return Path(candidate).expanduser()


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}

    raw = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    parser = json.loads if suffix == ".json" else tomllib.loads

    try:
        data = parser(raw)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"Syntax error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config root in {path} must be a mapping.")

    return data


def _detect_env_overrides(env_vars: Mapping[str, str]) -> set[str]:
    """Detect which fields are overridden by environment variables.

    Nested context fields use the double-underscore form, e.g.
    OPENAI_CONTEXT__MAX_FILE_BYTES.
    """
    prefix = AppConfig.model_config.get("env_prefix", "")
    delimiter = AppConfig.model_config.get("env_nested_delimiter", "__")
    overrides: set[str] = set()

    for field in AppConfig.model_fields:
        if field == "context":
            continue
        if f"{prefix}{field}".upper() in env_vars:
            overrides.add(field)

    for field in ContextConfig.model_fields:
        env_key = f"{prefix}context{delimiter}{field}".upper()
        if env_key in env_vars:
            overrides.add(f"context.{field}")

    return overrides


def load_config(config_path: Path | None = None) -> tuple[AppConfig, ConfigLoadResult]:
    """
    Load configuration with Safe Mode fallback.
    If the file is invalid, returns defaults + environment and an error message.
    """
    env_vars: Mapping[str, str] = os.environ
    resolved_path = _resolve_config_path(config_path, env_vars)
    env_overrides = _detect_env_overrides(env_vars)

    error: str | None = None
    file_loaded = False
    file_data: dict[str, Any] = {}

    try:
        file_data = _read_config_file(resolved_path)
        file_loaded = resolved_path.exists()
    except (ConfigurationError, OSError) as exc:
        error = str(exc)

    try:
        config = AppConfig(**file_data)
    except ValidationError as exc:
        error = f"{error}; {exc}" if error else str(exc)
        try:
            config = AppConfig()
        except ValidationError as env_exc:
            # Nothing to fall back to when the environment itself is invalid.
            raise ConfigurationError(
                "Invalid OPENAI_* environment configuration", context={"error": str(env_exc)}
            ) from env_exc

    load_result = ConfigLoadResult(
        path=resolved_path,
        file_loaded=file_loaded,
        env_overrides=env_overrides,
        error=error,
    )

    return config, load_result


__all__ = [
    "AppConfig",
    "CONFIG_ENV_VAR",
    "ConfigLoadResult",
    "ContextConfig",
    "DEFAULT_BASE_URL",
    "LogLevel",
    "load_config",
]

"""Configuration loading, validation and saving for CodeAid."""

from __future__ import annotations

from copy import deepcopy
import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigValidationError

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "codeaid"
CONFIG_PATH = CONFIG_DIR / "config.json"

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
API_KEY_ENV_VAR = "OPENROUTER_API_KEY"
DEFAULT_MODEL = "mistralai/mistral-small-3.1-24b-instruct:free"

MODEL_CHOICES: tuple[str, ...] = (
    DEFAULT_MODEL,
    "anthropic/claude-3-haiku-20240307",
    "anthropic/claude-3-sonnet-20240229",
    "anthropic/claude-3-opus-20240229",
    "meta-llama/llama-3-8b-instruct",
    "meta-llama/llama-3-70b-instruct",
)

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}

# Keys written by the first releases, which kept a flat JSON object.
_LEGACY_API_KEYS = ("openrouter_api_key", "model")


class AppConfig(BaseModel):
    """Application metadata."""

    title: str = "CodeAid"
    show_logo: bool = True

    @field_validator("title", mode="before")
    @classmethod
    def _validate_title(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("String value must not be empty.")
        return normalized


class ApiConfig(BaseModel):
    """Completion service endpoint and model settings."""

    openrouter_api_key: str = ""
    base_url: str = OPENROUTER_BASE_URL
    model: str = DEFAULT_MODEL
    max_tokens: int = Field(default=1024, ge=1, le=200_000)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    @field_validator("openrouter_api_key", mode="before")
    @classmethod
    def _normalize_api_key(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("openrouter_api_key must be a string.")
        return value.strip()

    @field_validator("base_url", "model", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("String value must not be empty.")
        return normalized

    @field_validator("base_url")
    @classmethod
    def _validate_scheme(cls, value: str) -> str:
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("base_url must use http or https scheme.")
        return value.rstrip("/")


class TimeoutConfig(BaseModel):
    """Per-request deadline and the coordinator failsafe that bounds it."""

    request_seconds: float = Field(default=10.0, gt=0, le=3600)
    failsafe_seconds: float = Field(default=15.0, gt=0, le=3600)

    @model_validator(mode="after")
    def _validate_ordering(self) -> TimeoutConfig:
        if self.request_seconds >= self.failsafe_seconds:
            raise ValueError(
                "timeouts.request_seconds must be shorter than timeouts.failsafe_seconds."
            )
        return self


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/codeaid/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("log_file_path must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("log_file_path must not be empty.")
        return normalized


class Config(BaseModel):
    """Root configuration model for all sections."""

    app: AppConfig = AppConfig()
    api: ApiConfig = ApiConfig()
    timeouts: TimeoutConfig = TimeoutConfig()
    logging: LoggingConfig = LoggingConfig()


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump()


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _migrate_legacy_layout(raw: dict[str, Any]) -> dict[str, Any]:
    """Move top-level ``openrouter_api_key``/``model`` into the ``api`` section."""
    legacy = {key: raw[key] for key in _LEGACY_API_KEYS if key in raw}
    if not legacy:
        return raw

    migrated = {key: value for key, value in raw.items() if key not in legacy}
    api_section = migrated.get("api")
    if not isinstance(api_section, dict):
        api_section = {}
    migrated["api"] = {**legacy, **api_section}
    LOGGER.info(
        "config.migrated",
        extra={"event": "config.migrated", "keys": sorted(legacy)},
    )
    return migrated


def _safe_default_config() -> dict[str, dict[str, Any]]:
    """Return a deep copy of validated default config data."""
    return deepcopy(DEFAULT_CONFIG)


def _validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged config and fallback to safe defaults when possible."""
    try:
        config = Config.model_validate(raw)
        return config.model_dump()
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return _safe_default_config()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def config_exists(config_path: Path | None = None) -> bool:
    """Return whether a configuration file has been written."""
    return (config_path or CONFIG_PATH).exists()


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """
    Load configuration from JSON, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH

    raw_data: Any = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = json.loads(target_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    if not isinstance(raw_data, dict):
        return _safe_default_config()
    merged = _deep_merge(DEFAULT_CONFIG, _migrate_legacy_layout(raw_data))
    return _validate_config(merged)


def save_config(
    config: dict[str, Any], config_path: Path | None = None
) -> Path:
    """Validate and write ``config`` as indented JSON; return the path written."""
    target_path = config_path or CONFIG_PATH
    try:
        validated = Config.model_validate(config).model_dump()
    except ValidationError as exc:
        raise ConfigValidationError(f"Refusing to save invalid configuration: {exc}") from exc

    ensure_config_dir(target_path.parent)
    target_path.write_text(
        json.dumps(validated, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
    )
    _enforce_private_permissions(target_path)
    LOGGER.info(
        "config.saved", extra={"event": "config.saved", "path": str(target_path)}
    )
    return target_path


def resolve_api_key(config: dict[str, Any]) -> str:
    """Return the configured API key, falling back to the environment and ``.env``."""
    configured = str(config.get("api", {}).get("openrouter_api_key", "")).strip()
    if configured:
        return configured
    load_dotenv()
    return os.getenv(API_KEY_ENV_VAR, "").strip()


def mask_api_key(key: str) -> str:
    """Mask an API key for display."""
    if not key:
        return ""
    if len(key) > 8:
        return f"{key[:4]}...{key[-4:]}"
    return "****"

"""Service configuration.

Values are layered, later layers winning:
  1. defaults below
  2. an optional YAML file (path from --config or VIDMERGE_CONFIG)
  3. VIDMERGE_* environment variables

YAML schema (every key optional):
  work_dir: "./uploads"
  max_files: 5
  max_file_bytes: 524288000     # null for no limit
  max_total_bytes: 2147483648   # null for no limit
  merge_timeout: 600            # seconds; 0 or null disables
  ffmpeg_binary: null           # null -> imageio-ffmpeg's binary
  host: "0.0.0.0"
  port: 3000
  cors_origins: ["*"]
  log_level: INFO
"""

import os
from pathlib import Path

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "VIDMERGE_"
CONFIG_ENV = "VIDMERGE_CONFIG"

MiB = 1024 * 1024

ALLOWED_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class Settings(BaseSettings):
    """Service settings; keyword arguments (the YAML layer) lose to VIDMERGE_* variables."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
        str_strip_whitespace=True,
    )

    work_dir: Path = Path("uploads")
    max_files: int = Field(5, ge=1)
    max_file_bytes: int | None = Field(500 * MiB, gt=0)
    max_total_bytes: int | None = Field(2048 * MiB, gt=0)
    merge_timeout: float | None = Field(600.0, ge=0)
    ffmpeg_binary: str | None = None
    host: str = "0.0.0.0"
    port: int = Field(3000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        return env_settings, init_settings

    @field_validator("max_file_bytes", "max_total_bytes", "merge_timeout", "ffmpeg_binary", mode="before")
    @classmethod
    def _empty_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("merge_timeout")
    @classmethod
    def _zero_timeout_disables(cls, value: float | None) -> float | None:
        return value or None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: object) -> object:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        normalized = str(value).strip().upper()
        if normalized not in ALLOWED_LOG_LEVELS:
            allowed = ", ".join(sorted(ALLOWED_LOG_LEVELS))
            raise ValueError(f"log_level must be one of: {allowed}")
        return normalized


def _read_config(config_path: str | Path) -> dict:
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Settings: {config_path} must contain a mapping")
    unknown = sorted(set(raw) - set(Settings.model_fields))
    if unknown:
        raise ValueError(f"Settings: unknown key(s) in {config_path}: {unknown}")
    return raw


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Build Settings from defaults, an optional YAML file and the environment.

    Raises:
        FileNotFoundError: The config file does not exist.
        ValueError: Unknown keys or invalid values.
    """
    config_path = config_path or os.environ.get(CONFIG_ENV)
    raw = _read_config(config_path) if config_path else {}
    try:
        return Settings(**raw)
    except ValueError as exc:
        raise ValueError(f"Settings: invalid configuration: {exc}") from exc

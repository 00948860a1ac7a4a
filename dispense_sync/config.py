"""
Settings management for the dispense sync pipeline.

Settings are resolved from, in increasing precedence: model defaults, an
optional YAML file, an optional ``.env`` file, ``DISPENSE_<FIELD>``
environment variables and explicit overrides (CLI flags).

Expected YAML format:
```yaml
settings:
  db_host: db.hospital.local
  db_name: pharmacy
  table_name: tb_dispense_middle
  api_url: https://middleware.hospital.local/api/dispense
  max_batch_size: 100
  failure_policy: terminal
```
"""

from contextvars import ContextVar
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, InitSettingsSource, PydanticBaseSettingsSource

from dispense_sync.core.errors import ConfigurationError
from dispense_sync.utils.validation import (
    ValidationError as InputValidationError,
    sanitize_sql_identifier,
    validate_api_url,
)

# Values of the YAML file being loaded, read by the settings source below
_yaml_values: ContextVar[dict[str, Any] | None] = ContextVar("yaml_values", default=None)


class SyncSettings(BaseSettings):
    """
    Every value the pipeline reads from its environment.

    Attributes:
        db_*: PostgreSQL connection parameters
        pool_min_size / pool_max_size: Connection pool bounds
        connect_timeout: Seconds to wait for a pooled connection
        statement_timeout: Seconds any single store statement may run
        table_name: Dispense middle table
        api_url / api_key: Downstream endpoint and optional key
        http_timeout: Seconds for one POST
        payload_field: Top-level container field of the payload
        max_batch_size: Records per POST
        window_size: Maximum rows selected per run
        fetch_size: Rows fetched per server-side cursor round trip
        failure_policy: "terminal" or "retry_transient"
        use_run_lock / run_lock_key: Advisory-lock guard against concurrent runs
        poll_interval_seconds / error_backoff_seconds: Polling runner timing
        log_level / log_format: Logging setup
    """

    db_host: str = "localhost"
    db_port: int = Field(5432, gt=0, lt=65536)
    db_name: str = "pharmacy"
    db_user: str = "dispense_sync"
    db_password: str | None = None
    pool_min_size: int = Field(2, ge=1)
    pool_max_size: int = Field(5, ge=3)
    connect_timeout: float = Field(10.0, gt=0)
    statement_timeout: float = Field(30.0, gt=0)

    table_name: str = "tb_dispense_middle"

    api_url: str = "http://localhost:8080/api/dispense"
    api_key: str | None = None
    http_timeout: float = Field(30.0, gt=0)
    payload_field: str = Field("data", min_length=1)

    max_batch_size: int = Field(100, ge=1, le=10000)
    window_size: int = Field(1000, ge=1, le=100000)
    fetch_size: int = Field(200, ge=1)

    failure_policy: Literal["terminal", "retry_transient"] = "terminal"
    use_run_lock: bool = True
    run_lock_key: int = 7_231_001

    poll_interval_seconds: float = Field(5.0, gt=0)
    error_backoff_seconds: float = Field(5.0, gt=0)

    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    class Config:
        env_prefix = "DISPENSE_"
        env_file = None
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        yaml_settings = InitSettingsSource(settings_cls, init_kwargs=_yaml_values.get() or {})
        return init_settings, env_settings, dotenv_settings, yaml_settings, file_secret_settings

    @field_validator("table_name")
    @classmethod
    def check_table_name(cls, v: str) -> str:
        try:
            return sanitize_sql_identifier(v, "table_name")
        except InputValidationError as e:
            raise ValueError(str(e)) from e

    @field_validator("api_url")
    @classmethod
    def check_api_url(cls, v: str) -> str:
        try:
            return validate_api_url(v)
        except InputValidationError as e:
            raise ValueError(str(e)) from e

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def load(
        cls,
        config_path: str | Path | None = None,
        env_file: str | Path | None = None,
        **overrides: Any,
    ) -> "SyncSettings":
        """
        Build settings from file, environment and overrides.

        Args:
            config_path: Optional YAML settings file
            env_file: Optional .env file (its values do not override the real environment)
            **overrides: Explicit values; None values are ignored

        Returns:
            Validated SyncSettings

        Raises:
            ConfigurationError: If a source is unreadable or a value is invalid
        """
        yaml_values = load_yaml_settings(config_path) if config_path is not None else {}

        if env_file is not None and not Path(env_file).is_file():
            raise ConfigurationError(f"Environment file not found: {env_file}")

        values = {k: v for k, v in overrides.items() if v is not None}

        token = _yaml_values.set(yaml_values)
        try:
            return cls(_env_file=env_file, **values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e
        finally:
            _yaml_values.reset(token)

    def summary(self) -> str:
        """Multi-line description with secrets masked."""
        lines = [
            "Dispense Sync Configuration Summary:",
            f"  Database: {self.db_user}@{self.db_host}:{self.db_port}/{self.db_name}",
            f"  Password: {mask_secret(self.db_password)}",
            f"  Table: {self.table_name}",
            f"  Endpoint: {self.api_url} (timeout {self.http_timeout:g}s)",
            f"  API key: {mask_secret(self.api_key)}",
            f"  Batch size: {self.max_batch_size}, window: {self.window_size}",
            f"  Failure policy: {self.failure_policy}",
            f"  Run lock: {'on' if self.use_run_lock else 'off'}",
            f"  Poll interval: {self.poll_interval_seconds:g}s",
        ]
        return "\n".join(lines)


def load_yaml_settings(config_path: str | Path) -> dict[str, Any]:
    """
    Read the ``settings`` section of a YAML file.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Settings file not found: {config_path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Settings file is not valid YAML: {e}") from e

    if not config or "settings" not in config:
        raise ConfigurationError("Settings file must contain 'settings' section")

    settings = config["settings"]
    if not isinstance(settings, dict):
        raise ConfigurationError("'settings' section must be a mapping")

    unknown = set(settings) - set(SyncSettings.model_fields)
    if unknown:
        raise ConfigurationError(f"Unknown settings: {', '.join(sorted(unknown))}")

    return settings


def mask_secret(value: str | None) -> str:
    """
    Mask a secret for display.

    Examples:
        >>> mask_secret("hunter2")
        '*******'
        >>> mask_secret(None)
        '(not set)'
    """
    if not value:
        return "(not set)"
    return "*" * min(len(value), 8)

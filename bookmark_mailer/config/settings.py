from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.cron import CronTrigger
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from bookmark_mailer.core.collation import CollationStrategy
from bookmark_mailer.domain.exceptions import ConfigurationError


class RaindropConfig(BaseModel):
    """Raindrop.io API access."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_token: str = Field(default="", validation_alias="RAINDROP_API_TOKEN")
    api_url: str = Field(
        default="https://api.raindrop.io/rest/v1", validation_alias="RAINDROP_API_URL"
    )
    timeout_sec: int = Field(default=30, validation_alias="RAINDROP_TIMEOUT_SEC")

    @field_validator("api_token", mode="before")
    @classmethod
    def _validate_api_token(cls, value: Any) -> str:
        if value in (None, ""):
            return ""
        token = str(value).strip()
        if len(token) > 500:
            msg = "Raindrop.io API token appears to be too long"
            raise ValueError(msg)
        return token

    @field_validator("api_url", mode="before")
    @classmethod
    def _validate_api_url(cls, value: Any) -> str:
        url = str(value or "https://api.raindrop.io/rest/v1").strip()
        if not url.startswith(("http://", "https://")):
            msg = "Raindrop.io API URL must start with http:// or https://"
            raise ValueError(msg)
        return url.rstrip("/")

    @field_validator("timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> int:
        try:
            timeout = int(str(value if value not in (None, "") else 30))
        except ValueError as exc:
            msg = "Timeout must be a valid integer"
            raise ValueError(msg) from exc
        if timeout <= 0 or timeout > 300:
            msg = "Timeout must be between 1 and 300 seconds"
            raise ValueError(msg)
        return timeout


class EmailConfig(BaseModel):
    """Digest sender and recipient."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_addr: str = Field(default="", validation_alias="EMAIL_FROM")
    to_addr: str = Field(default="", validation_alias="EMAIL_TO")

    @field_validator("from_addr", "to_addr", mode="before")
    @classmethod
    def _validate_address(cls, value: Any, info: ValidationInfo) -> str:
        if value in (None, ""):
            return ""
        address = str(value).strip()
        if address and "@" not in address:
            msg = f"{info.field_name.replace('_', ' ')} must be an email address"
            raise ValueError(msg)
        return address


class AwsConfig(BaseModel):
    """AWS region and the Parameter Store path holding the digest secrets."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    region: str = Field(
        default="us-east-1", validation_alias=AliasChoices("AWS_REGION", "AWS_DEFAULT_REGION")
    )
    parameter_store_path: str = Field(
        default="/dropcast/config", validation_alias="PARAMETER_STORE_PATH"
    )

    @field_validator("region", mode="before")
    @classmethod
    def _validate_region(cls, value: Any) -> str:
        return str(value or "us-east-1").strip()

    @field_validator("parameter_store_path", mode="before")
    @classmethod
    def _validate_path(cls, value: Any) -> str:
        path = str(value or "/dropcast/config").strip()
        if not path.startswith("/"):
            msg = "Parameter Store path must start with '/'"
            raise ValueError(msg)
        return path


class DigestConfig(BaseModel):
    """Digest window and rendering options."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    lookback_days: int = Field(default=7, validation_alias="DIGEST_LOOKBACK_DAYS")
    timezone: str = Field(default="UTC", validation_alias="DIGEST_TIMEZONE")
    collation: CollationStrategy = Field(
        default=CollationStrategy.UNICODE, validation_alias="FOLDER_COLLATION"
    )

    @field_validator("lookback_days", mode="before")
    @classmethod
    def _validate_lookback(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 7))
        except ValueError as exc:
            msg = "Digest lookback days must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 1 or parsed > 366:
            msg = "Digest lookback days must be between 1 and 366"
            raise ValueError(msg)
        return parsed

    @field_validator("timezone", mode="before")
    @classmethod
    def _validate_timezone(cls, value: Any) -> str:
        name = str(value or "UTC").strip()
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown timezone: {name}"
            raise ValueError(msg) from exc
        return name

    @field_validator("collation", mode="before")
    @classmethod
    def _validate_collation(cls, value: Any) -> CollationStrategy:
        if isinstance(value, CollationStrategy):
            return value
        raw = str(value or "unicode").lower().strip()
        try:
            return CollationStrategy(raw)
        except ValueError as exc:
            valid = sorted(strategy.value for strategy in CollationStrategy)
            msg = f"Invalid folder collation: {raw}. Must be one of {valid}"
            raise ValueError(msg) from exc

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class SchedulerConfig(BaseModel):
    """Cron schedule for ``serve`` mode."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cron: str = Field(default="0 9 * * mon", validation_alias="DIGEST_SCHEDULE")

    @field_validator("cron", mode="before")
    @classmethod
    def _validate_cron(cls, value: Any) -> str:
        expression = str(value or "0 9 * * mon").strip()
        try:
            CronTrigger.from_crontab(expression)
        except ValueError as exc:
            msg = f"Invalid cron expression for DIGEST_SCHEDULE: {expression}"
            raise ValueError(msg) from exc
        return expression


class RuntimeConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(default=True, validation_alias="LOG_JSON")

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> str:
        log_level = str(value or "INFO").upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level not in valid_levels:
            msg = f"Invalid log level: {value}. Must be one of {valid_levels}"
            raise ValueError(msg)
        return log_level


@dataclass(frozen=True)
class AppConfig:
    raindrop: RaindropConfig
    email: EmailConfig
    aws: AwsConfig
    digest: DigestConfig
    scheduler: SchedulerConfig
    runtime: RuntimeConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Nested models are populated by matching ``validation_alias`` on each field.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    raindrop: RaindropConfig = Field(default_factory=RaindropConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    aws: AwsConfig = Field(default_factory=AwsConfig)
    digest: DigestConfig = Field(default_factory=DigestConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @model_validator(mode="before")
    @classmethod
    def _build_nested_from_env(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Build nested config objects from flat environment variables.

        Constructor arguments take precedence over the environment.
        """
        if not isinstance(data, dict):
            return data

        result = dict(data)
        merged_source = {**dict(os.environ), **data}

        for field_name, field_info in cls.model_fields.items():
            annotation = field_info.annotation
            if not isinstance(annotation, type) or not issubclass(annotation, BaseModel):
                continue

            nested_data: dict[str, Any] = {}
            for nested_field_name, nested_field in annotation.model_fields.items():
                env_value = cls._resolve_env_value(merged_source, nested_field)
                if env_value is not None:
                    nested_data[nested_field_name] = env_value

            if nested_data:
                if field_name in result and isinstance(result[field_name], dict):
                    result[field_name] = {**nested_data, **result[field_name]}
                else:
                    result[field_name] = nested_data

        return result

    @staticmethod
    def _resolve_env_value(data: dict[str, Any], field: Any) -> Any | None:
        aliases: list[str] = []
        alias = field.validation_alias
        if isinstance(alias, AliasChoices):
            aliases.extend(choice for choice in alias.choices if isinstance(choice, str))
        elif isinstance(alias, str):
            aliases.append(alias)

        for name in aliases:
            if name in data:
                return data[name]
        return None

    def as_app_config(self) -> AppConfig:
        return AppConfig(
            raindrop=self.raindrop,
            email=self.email,
            aws=self.aws,
            digest=self.digest,
            scheduler=self.scheduler,
            runtime=self.runtime,
        )


def load_config(**overrides: Any) -> AppConfig:
    """Load application configuration from the environment and ``.env``.

    Args:
        overrides: Flat ``ENV_NAME=value`` pairs that take precedence over the environment

    Returns:
        Immutable AppConfig instance

    Raises:
        ConfigurationError: If validation fails

    """
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        raise ConfigurationError(msg) from exc
    return settings.as_app_config()

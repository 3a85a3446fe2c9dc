from __future__ import annotations

from .settings import (
    AppConfig,
    AwsConfig,
    DigestConfig,
    EmailConfig,
    RaindropConfig,
    RuntimeConfig,
    SchedulerConfig,
    Settings,
    load_config,
)

__all__ = [
    "AppConfig",
    "AwsConfig",
    "DigestConfig",
    "EmailConfig",
    "RaindropConfig",
    "RuntimeConfig",
    "SchedulerConfig",
    "Settings",
    "load_config",
]

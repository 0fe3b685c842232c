"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    IdentityConfig,
    MirrorConfig,
    PacingConfig,
    RefreshConfig,
    RetryPolicy,
    ScheduleConfig,
    ScheduleType,
    SeedConfig,
    SinkConfig,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "IdentityConfig",
    "MirrorConfig",
    "PacingConfig",
    "RefreshConfig",
    "RetryPolicy",
    "ScheduleConfig",
    "ScheduleType",
    "SeedConfig",
    "SinkConfig",
]

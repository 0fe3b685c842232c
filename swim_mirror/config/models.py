"""Pydantic models describing a swim-mirror deployment."""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from ..model.facets import AGE_SENTINEL, Gender

DEFAULT_PROXY_TEMPLATE = "socks5://127.0.0.1:{port}"
DEFAULT_PROXY_BASE_PORT = 53000
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def default_age_bands() -> list[tuple[int | None, int | None]]:
    """Under-8, every single year from 8 to 22, then 23 and over."""

    bands: list[tuple[int | None, int | None]] = [(0, 7)]
    bands.extend((age, age) for age in range(8, 23))
    bands.append((23, None))
    return bands


class ScheduleType(str, Enum):
    """Scheduler modes allowed for the refresh job."""

    CRON = "cron"
    INTERVAL = "interval"
    ONCE = "once"


class ScheduleConfig(BaseModel):
    """Configuration describing when the refresh should run."""

    type: ScheduleType = Field(default=ScheduleType.ONCE)
    value: Any = Field(
        default=None,
        description="Cron expression, interval seconds or ISO datetime, depending on type.",
    )

    @model_validator(mode="after")
    def _validate_value(self) -> "ScheduleConfig":
        if self.type is ScheduleType.CRON and not isinstance(self.value, str):
            raise ValueError("Cron schedule requires string expression")
        if self.type is ScheduleType.INTERVAL and not isinstance(self.value, (int, float, dict)):
            raise ValueError("Interval schedule requires seconds (int/float) or kwargs dict")
        if (
            self.type is ScheduleType.ONCE
            and self.value is not None
            and not isinstance(self.value, str)
        ):
            raise ValueError("Once schedule expects ISO datetime string or null")
        return self


class IdentityConfig(BaseModel):
    """Outbound network identities, one per worker."""

    clients: int = 8
    proxies: list[str] = Field(default_factory=list)
    proxy_file: Path | None = None
    shuffle_proxies: bool = False
    proxy_template: str | None = DEFAULT_PROXY_TEMPLATE
    proxy_base_port: int = DEFAULT_PROXY_BASE_PORT
    user_agents: list[str] | Path | None = None

    @model_validator(mode="after")
    def _validate_identities(self) -> "IdentityConfig":
        if self.clients < 1:
            raise ValueError("clients must be >= 1")
        if self.proxy_template is not None and "{port}" not in self.proxy_template:
            raise ValueError("proxy_template must contain a {port} placeholder")
        if isinstance(self.user_agents, Path):
            if not self.user_agents.exists():
                raise ValueError(f"UA file not found: {self.user_agents}")
            content = self.user_agents.read_text(encoding="utf-8").splitlines()
            self.user_agents = [line.strip() for line in content if line.strip()]
        return self

    def resolved_proxies(self, count: int | None = None) -> list[str]:
        """Explicit proxies win; otherwise expand the template once per client.

        Entries of ``proxy_file`` count as explicit and are read by the proxy
        pool. An empty list without a file means direct connections.
        """

        if self.proxies or self.proxy_file is not None:
            return list(self.proxies)
        if self.proxy_template is None:
            return []
        return [
            self.proxy_template.format(port=self.proxy_base_port + index)
            for index in range(count or self.clients)
        ]

    def resolved_user_agents(self) -> list[str]:
        if isinstance(self.user_agents, list) and self.user_agents:
            return list(self.user_agents)
        return [DEFAULT_USER_AGENT]


class PacingConfig(BaseModel):
    """Per-item time budget drawn uniformly from ``delay_range`` (seconds)."""

    delay_range: tuple[float, float] = (5.0, 10.0)

    @field_validator("delay_range", mode="before")
    @classmethod
    def _coerce_delay(cls, value: Any) -> tuple[float, float]:
        if value in (None, ""):
            return (0.0, 0.0)
        if isinstance(value, (list, tuple)) and len(value) == 2:
            low, high = float(value[0]), float(value[1])
            if low < 0 or high < 0:
                raise ValueError("Delay range values must be non-negative")
            if high < low:
                raise ValueError("Delay range upper bound must be >= lower bound")
            return (low, high)
        raise ValueError("Delay range expects a two-item list or tuple")


class RetryPolicy(BaseModel):
    """How often a failing query is requeued and how long it waits.

    ``max_attempts=None`` retries forever. The delay before attempt ``n`` is
    ``min(backoff_max, backoff_base * 2 ** (n - 1))``.
    """

    max_attempts: int | None = None
    backoff_base: float = 0.0
    backoff_max: float = 300.0

    @model_validator(mode="after")
    def _validate_policy(self) -> "RetryPolicy":
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1 or null")
        if self.backoff_base < 0 or self.backoff_max < 0:
            raise ValueError("backoff values must be non-negative")
        return self

    def allows(self, attempts: int) -> bool:
        """True when an item that has failed ``attempts`` times may run again."""

        return self.max_attempts is None or attempts < self.max_attempts

    def delay(self, attempts: int) -> float:
        if self.backoff_base <= 0 or attempts <= 0:
            return 0.0
        return min(self.backoff_max, self.backoff_base * 2 ** (attempts - 1))


class SeedConfig(BaseModel):
    """Coarse grid the crawl starts from."""

    genders: list[Gender] = Field(default_factory=lambda: [Gender.MALE, Gender.FEMALE])
    age_bands: list[tuple[int | None, int | None]] = Field(default_factory=default_age_bands)
    per_day: bool = True
    members_only: bool = False
    best_only: bool = False
    result_cap: int = 5000
    atomize: bool = False

    @field_validator("genders", mode="before")
    @classmethod
    def _coerce_genders(cls, value: Any) -> list[Gender]:
        if isinstance(value, str):
            value = [value]
        return [Gender.coerce(item) for item in value]

    @field_validator("age_bands", mode="before")
    @classmethod
    def _coerce_bands(cls, value: Any) -> list[tuple[int | None, int | None]]:
        if value in (None, ""):
            return [(None, None)]
        bands = []
        for band in value:
            if not isinstance(band, (list, tuple)) or len(band) != 2:
                raise ValueError("Each age band expects a two-item list [from, to]")
            start, end = (None if item in (None, "", "all") else int(item) for item in band)
            if start is not None and not 0 <= start <= AGE_SENTINEL:
                raise ValueError(f"Age {start} is outside 0..{AGE_SENTINEL}")
            if end is not None and not 0 <= end <= AGE_SENTINEL:
                raise ValueError(f"Age {end} is outside 0..{AGE_SENTINEL}")
            if start is not None and end is not None and end < start:
                raise ValueError(f"Age band {band} ends before it starts")
            bands.append((start, end))
        return bands

    @model_validator(mode="after")
    def _validate_seed(self) -> "SeedConfig":
        if not self.genders:
            raise ValueError("genders cannot be empty")
        if self.result_cap < 1:
            raise ValueError("result_cap must be >= 1")
        return self


class SinkConfig(BaseModel):
    """Where accepted record sets are written."""

    format: Literal["csv", "json", "sqlite", "mongodb"] = "csv"
    path: Path | None = None
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_database: str = "swim_mirror"
    mongo_collection: str = "top_times"

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path | None:
        return None if value in (None, "") else Path(value)


class RefreshConfig(BaseModel):
    """Rolling re-crawl of the most recent window."""

    enabled: bool = False
    schedule: ScheduleConfig = Field(
        default_factory=lambda: ScheduleConfig(type=ScheduleType.CRON, value="0 3 * * *")
    )
    trailing_days: int = 30
    lag_days: int = 21

    @model_validator(mode="after")
    def _validate_window(self) -> "RefreshConfig":
        if self.trailing_days < 1:
            raise ValueError("trailing_days must be >= 1")
        if self.lag_days < 0:
            raise ValueError("lag_days must be >= 0")
        return self

    def window(self, today: date) -> tuple[date, date]:
        end = today - timedelta(days=self.lag_days)
        return end - timedelta(days=self.trailing_days - 1), end


class MirrorConfig(BaseModel):
    """Top-level deployment settings."""

    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    pacing: PacingConfig = Field(default_factory=PacingConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    seed: SeedConfig = Field(default_factory=SeedConfig)
    sink: SinkConfig = Field(default_factory=SinkConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    saturation_fraction: float = 0.98
    request_timeout: float = 60.0
    split_zones: bool = False
    store_path: Path = Field(default=Path("data/history/requests.db"))
    results_dir: Path = Field(default=Path("data/results"))
    metrics_port: int | None = None
    enable_progress_bar: bool = True

    @field_validator("store_path", "results_dir", mode="before")
    @classmethod
    def _coerce_dirs(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_limits(self) -> "MirrorConfig":
        if not 0 < self.saturation_fraction <= 1:
            raise ValueError("saturation_fraction must be within (0, 1]")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        return self

    def resolve_path(self, path: Path, base_dir: Path) -> Path:
        """Return ``path`` relative to the project home when not absolute."""

        if not path.is_absolute():
            return (base_dir / path).resolve()
        return path


__all__ = [
    "DEFAULT_PROXY_BASE_PORT",
    "DEFAULT_PROXY_TEMPLATE",
    "DEFAULT_USER_AGENT",
    "IdentityConfig",
    "MirrorConfig",
    "PacingConfig",
    "RefreshConfig",
    "RetryPolicy",
    "ScheduleConfig",
    "ScheduleType",
    "SeedConfig",
    "SinkConfig",
    "default_age_bands",
]

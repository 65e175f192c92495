"""
Centralized configuration with environment variable overrides.

Slot granularity, the daily generation window, cache TTLs and the HTTP
bind address are all configurable here. Nothing is hardcoded in the
resolver or the admission controller.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from salon_scheduler.logging_context import RequestIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(request_id)s] [%(name)s] %(levelname)s: %(message)s"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class SchedulingConfig:
    """Slot grid and booking window settings."""

    slot_interval_minutes: int = _safe_int("SLOT_INTERVAL_MINUTES", "30")
    day_start_hour: int = _safe_int("DAY_START_HOUR", "8")
    day_end_hour: int = _safe_int("DAY_END_HOUR", "20")
    default_service_minutes: int = _safe_int("DEFAULT_SERVICE_MINUTES", "30")
    booking_horizon_days: int = _safe_int("BOOKING_HORIZON_DAYS", "90")


@dataclass(frozen=True)
class CacheConfig:
    """Read-through availability cache settings."""

    availability_ttl_sec: float = _safe_float("AVAILABILITY_CACHE_TTL", "15.0")
    enabled: bool = _safe_bool("AVAILABILITY_CACHE_ENABLED", "true")


@dataclass(frozen=True)
class ApiConfig:
    """HTTP service bind settings."""

    host: str = os.getenv("API_HOST", "127.0.0.1")
    port: int = _safe_int("API_PORT", "8000")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "salon-scheduler")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    interval = config.scheduling.slot_interval_minutes
    if not 5 <= interval <= 120:
        raise ValueError(
            f"SLOT_INTERVAL_MINUTES must be between 5 and 120, got {interval}"
        )
    if 60 % interval != 0 and interval % 60 != 0:
        raise ValueError(
            f"SLOT_INTERVAL_MINUTES must divide an hour evenly, got {interval}"
        )
    start, end = config.scheduling.day_start_hour, config.scheduling.day_end_hour
    if not 0 <= start < end <= 24:
        raise ValueError(
            f"DAY_START_HOUR/DAY_END_HOUR must satisfy 0 <= start < end <= 24, "
            f"got {start}/{end}"
        )
    if config.scheduling.default_service_minutes < 1:
        raise ValueError(
            "DEFAULT_SERVICE_MINUTES must be >= 1, "
            f"got {config.scheduling.default_service_minutes}"
        )
    if config.scheduling.booking_horizon_days < 1:
        raise ValueError(
            "BOOKING_HORIZON_DAYS must be >= 1, "
            f"got {config.scheduling.booking_horizon_days}"
        )
    if config.cache.availability_ttl_sec < 0:
        raise ValueError(
            f"AVAILABILITY_CACHE_TTL must be >= 0, got {config.cache.availability_ttl_sec}"
        )
    if not 1 <= config.api.port <= 65535:
        raise ValueError(f"API_PORT must be between 1 and 65535, got {config.api.port}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()

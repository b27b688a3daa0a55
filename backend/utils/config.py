"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _default_zoom_levels() -> dict[str, float]:
    return {"compact": 40.0, "default": 80.0, "expanded": 120.0}


@dataclass(frozen=True)
class Settings:
    app_name: str = "Booking Calendar Engine"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    database_path: Path = PROJECT_ROOT / "data" / "calendar.db"

    timeline_default_days: int = 14
    timeline_navigation_step_days: int = 7
    timeline_pixel_per_day: float = 80.0
    timeline_zoom_levels: dict[str, float] = field(default_factory=_default_zoom_levels)
    turnover_hours: float = 4.0

    default_currency: str = "ZAR"

    seed_demo_data: bool = True
    seed_random_seed: int = 42
    seed_days: int = 30


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests reset with ``cache_clear``."""
    zoom_levels = _default_zoom_levels()
    zoom_levels["default"] = _env_float("TIMELINE_PIXEL_PER_DAY", zoom_levels["default"])
    return Settings(
        app_name=_env_str("APP_NAME", "Booking Calendar Engine"),
        app_version=_env_str("APP_VERSION", "1.0.0"),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        database_path=Path(
            _env_str("DATABASE_PATH", str(PROJECT_ROOT / "data" / "calendar.db"))
        ),
        timeline_default_days=_env_int("TIMELINE_DEFAULT_DAYS", 14),
        timeline_navigation_step_days=_env_int("TIMELINE_NAVIGATION_STEP_DAYS", 7),
        timeline_pixel_per_day=zoom_levels["default"],
        timeline_zoom_levels=zoom_levels,
        turnover_hours=_env_float("TURNOVER_HOURS", 4.0),
        default_currency=_env_str("DEFAULT_CURRENCY", "ZAR"),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", True),
        seed_random_seed=_env_int("SEED_RANDOM_SEED", 42),
        seed_days=_env_int("SEED_DAYS", 30),
    )

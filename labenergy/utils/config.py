"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_BASE_LOAD_CURVE: tuple[tuple[int, int, float], ...] = (
    (0, 6, 0.5),
    (6, 8, 1.0),
    (8, 18, 2.0),
    (18, 22, 1.5),
    (22, 24, 0.8),
)


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str = "Laboratory Energy Scheduler"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    database_path: Path = PROJECT_ROOT / "data" / "labenergy.db"

    synthetic_seed_enabled: bool = True
    synthetic_random_seed: int = 42
    synthetic_seed_days: int = 14

    availability_work_start: str = "08:00"
    availability_work_end: str = "18:00"
    availability_slot_increment_minutes: int = 30
    availability_default_duration_hours: float = 2.0
    availability_peak_consumption_threshold: float = 4.0
    availability_efficient_slot_max_power: float = 3.0
    availability_efficient_slot_limit: int = 3
    availability_best_slot_power_tolerance: float = 0.5
    availability_min_available_slots: int = 3
    availability_alternative_date_count: int = 3
    availability_booking_probability: float = 0.3
    availability_load_scope: str = "facility"
    availability_optimal_slot_days: int = 7
    availability_optimal_slots_per_day: int = 2

    optimization_max_daily_capacity: float = 50.0
    optimization_efficiency_threshold: float = 3.0
    optimization_peak_hour_multiplier: float = 1.5
    optimization_off_peak_discount: float = 0.8
    optimization_default_power_budget: float = 10.0
    optimization_default_machine_consumption: float = 2.0
    optimization_flexible_budget_factor: float = 1.2
    optimization_peak_factor: float = 1.2
    optimization_optimal_factor: float = 0.8
    optimization_recommended_slot_limit: int = 3
    optimization_base_load_curve: tuple[tuple[int, int, float], ...] = field(
        default=DEFAULT_BASE_LOAD_CURVE
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; call `get_settings.cache_clear()` to reload."""
    defaults = Settings()
    return Settings(
        app_name=_env_str("LABENERGY_APP_NAME", defaults.app_name),
        app_version=_env_str("LABENERGY_APP_VERSION", defaults.app_version),
        log_level=_env_str("LABENERGY_LOG_LEVEL", defaults.log_level),
        database_path=Path(
            _env_str("LABENERGY_DATABASE_PATH", str(defaults.database_path))
        ),
        synthetic_seed_enabled=_env_bool(
            "LABENERGY_SYNTHETIC_SEED_ENABLED",
            defaults.synthetic_seed_enabled,
        ),
        synthetic_random_seed=_env_int(
            "LABENERGY_SYNTHETIC_RANDOM_SEED",
            defaults.synthetic_random_seed,
        ),
        synthetic_seed_days=_env_int(
            "LABENERGY_SYNTHETIC_SEED_DAYS",
            defaults.synthetic_seed_days,
        ),
        availability_work_start=_env_str(
            "LABENERGY_WORK_START",
            defaults.availability_work_start,
        ),
        availability_work_end=_env_str(
            "LABENERGY_WORK_END",
            defaults.availability_work_end,
        ),
        availability_slot_increment_minutes=_env_int(
            "LABENERGY_SLOT_INCREMENT_MINUTES",
            defaults.availability_slot_increment_minutes,
        ),
        availability_peak_consumption_threshold=_env_float(
            "LABENERGY_PEAK_CONSUMPTION_THRESHOLD",
            defaults.availability_peak_consumption_threshold,
        ),
        availability_load_scope=_env_str(
            "LABENERGY_LOAD_SCOPE",
            defaults.availability_load_scope,
        ),
        optimization_max_daily_capacity=_env_float(
            "LABENERGY_MAX_DAILY_CAPACITY",
            defaults.optimization_max_daily_capacity,
        ),
        optimization_default_power_budget=_env_float(
            "LABENERGY_DEFAULT_POWER_BUDGET",
            defaults.optimization_default_power_budget,
        ),
    )

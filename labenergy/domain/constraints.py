"""Validation rules for availability scoring and power optimization."""

from __future__ import annotations

from dataclasses import dataclass

from labenergy.domain.time_ranges import MINUTES_PER_DAY


LOAD_SCOPES = ("facility", "laboratory")


@dataclass(frozen=True)
class AvailabilityConfig:
    work_start_minutes: int
    work_end_minutes: int
    slot_increment_minutes: int
    default_duration_hours: float
    peak_consumption_threshold: float
    efficient_slot_max_power: float
    efficient_slot_limit: int
    best_slot_power_tolerance: float
    min_available_slots: int
    alternative_date_count: int
    booking_probability: float
    load_scope: str


@dataclass(frozen=True)
class OptimizationConfig:
    work_start_minutes: int
    work_end_minutes: int
    max_daily_capacity: float
    efficiency_threshold: float
    peak_hour_multiplier: float
    off_peak_discount: float
    default_power_budget: float
    default_machine_consumption: float
    flexible_budget_factor: float
    peak_factor: float
    optimal_factor: float
    recommended_slot_limit: int
    base_load_curve: tuple[tuple[int, int, float], ...]


def _validate_working_window(start_minutes: int, end_minutes: int) -> None:
    if not 0 <= start_minutes < end_minutes <= MINUTES_PER_DAY:
        raise ValueError("working hours must satisfy 00:00 <= start < end <= 24:00")


def validate_availability_config(config: AvailabilityConfig) -> None:
    _validate_working_window(config.work_start_minutes, config.work_end_minutes)
    if config.slot_increment_minutes <= 0:
        raise ValueError("slot_increment_minutes must be > 0")
    if config.default_duration_hours <= 0:
        raise ValueError("default_duration_hours must be > 0")
    if config.peak_consumption_threshold < 0:
        raise ValueError("peak_consumption_threshold must be >= 0")
    if config.efficient_slot_max_power < 0:
        raise ValueError("efficient_slot_max_power must be >= 0")
    if config.efficient_slot_limit <= 0:
        raise ValueError("efficient_slot_limit must be > 0")
    if config.best_slot_power_tolerance < 0:
        raise ValueError("best_slot_power_tolerance must be >= 0")
    if config.min_available_slots < 0:
        raise ValueError("min_available_slots must be >= 0")
    if config.alternative_date_count <= 0:
        raise ValueError("alternative_date_count must be > 0")
    if not 0.0 <= config.booking_probability <= 1.0:
        raise ValueError("booking_probability must be between 0 and 1")
    if config.load_scope not in LOAD_SCOPES:
        raise ValueError(f"load_scope must be one of {LOAD_SCOPES}")


def validate_optimization_config(config: OptimizationConfig) -> None:
    _validate_working_window(config.work_start_minutes, config.work_end_minutes)
    if config.max_daily_capacity <= 0:
        raise ValueError("max_daily_capacity must be > 0")
    if config.efficiency_threshold <= 0:
        raise ValueError("efficiency_threshold must be > 0")
    if config.peak_hour_multiplier < 1.0:
        raise ValueError("peak_hour_multiplier must be >= 1")
    if not 0.0 < config.off_peak_discount <= 1.0:
        raise ValueError("off_peak_discount must be in (0, 1]")
    if config.default_power_budget <= 0:
        raise ValueError("default_power_budget must be > 0")
    if config.default_machine_consumption < 0:
        raise ValueError("default_machine_consumption must be >= 0")
    if config.flexible_budget_factor < 1.0:
        raise ValueError("flexible_budget_factor must be >= 1")
    if not 0.0 < config.optimal_factor < config.peak_factor:
        raise ValueError("optimal_factor must be > 0 and below peak_factor")
    if config.recommended_slot_limit <= 0:
        raise ValueError("recommended_slot_limit must be > 0")

    covered_hours: list[int] = []
    for start_hour, end_hour, load in config.base_load_curve:
        if not 0 <= start_hour < end_hour <= 24:
            raise ValueError("base_load_curve segments must satisfy 0 <= start < end <= 24")
        if load < 0:
            raise ValueError("base_load_curve loads must be >= 0")
        covered_hours.extend(range(start_hour, end_hour))
    if sorted(covered_hours) != list(range(24)):
        raise ValueError("base_load_curve must cover every hour of the day exactly once")

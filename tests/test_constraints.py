"""Tests for availability and optimization config validation."""

from __future__ import annotations

import pytest

from labenergy.domain.constraints import (
    AvailabilityConfig,
    OptimizationConfig,
    validate_availability_config,
    validate_optimization_config,
)
from labenergy.utils.config import DEFAULT_BASE_LOAD_CURVE


def valid_availability_config(**overrides) -> AvailabilityConfig:
    """Return a valid baseline AvailabilityConfig, optionally overriding fields."""
    defaults = {
        "work_start_minutes": 480,
        "work_end_minutes": 1080,
        "slot_increment_minutes": 30,
        "default_duration_hours": 2.0,
        "peak_consumption_threshold": 4.0,
        "efficient_slot_max_power": 3.0,
        "efficient_slot_limit": 3,
        "best_slot_power_tolerance": 0.5,
        "min_available_slots": 3,
        "alternative_date_count": 3,
        "booking_probability": 0.3,
        "load_scope": "facility",
    }
    defaults.update(overrides)
    return AvailabilityConfig(**defaults)


def valid_optimization_config(**overrides) -> OptimizationConfig:
    defaults = {
        "work_start_minutes": 480,
        "work_end_minutes": 1080,
        "max_daily_capacity": 50.0,
        "efficiency_threshold": 3.0,
        "peak_hour_multiplier": 1.5,
        "off_peak_discount": 0.8,
        "default_power_budget": 10.0,
        "default_machine_consumption": 2.0,
        "flexible_budget_factor": 1.2,
        "peak_factor": 1.2,
        "optimal_factor": 0.8,
        "recommended_slot_limit": 3,
        "base_load_curve": DEFAULT_BASE_LOAD_CURVE,
    }
    defaults.update(overrides)
    return OptimizationConfig(**defaults)


# --- Baseline pass ---

def test_valid_availability_config_passes() -> None:
    validate_availability_config(valid_availability_config())


def test_valid_optimization_config_passes() -> None:
    validate_optimization_config(valid_optimization_config())


# --- working window ---

def test_working_window_start_after_end_raises() -> None:
    with pytest.raises(ValueError):
        validate_availability_config(
            valid_availability_config(work_start_minutes=1080, work_end_minutes=480)
        )


def test_working_window_past_midnight_raises() -> None:
    with pytest.raises(ValueError):
        validate_optimization_config(valid_optimization_config(work_end_minutes=1441))


# --- availability fields ---

def test_slot_increment_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_availability_config(valid_availability_config(slot_increment_minutes=0))


def test_default_duration_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_availability_config(valid_availability_config(default_duration_hours=0.0))


def test_booking_probability_above_one_raises() -> None:
    with pytest.raises(ValueError):
        validate_availability_config(valid_availability_config(booking_probability=1.5))


def test_unknown_load_scope_raises() -> None:
    with pytest.raises(ValueError, match="load_scope"):
        validate_availability_config(valid_availability_config(load_scope="building"))


def test_laboratory_load_scope_passes() -> None:
    validate_availability_config(valid_availability_config(load_scope="laboratory"))


# --- optimization fields ---

def test_peak_multiplier_below_one_raises() -> None:
    with pytest.raises(ValueError):
        validate_optimization_config(valid_optimization_config(peak_hour_multiplier=0.9))


def test_off_peak_discount_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_optimization_config(valid_optimization_config(off_peak_discount=0.0))


def test_optimal_factor_above_peak_factor_raises() -> None:
    with pytest.raises(ValueError):
        validate_optimization_config(valid_optimization_config(optimal_factor=1.3))


def test_base_load_curve_with_gap_raises() -> None:
    curve = ((0, 6, 0.5), (8, 24, 2.0))
    with pytest.raises(ValueError, match="every hour"):
        validate_optimization_config(valid_optimization_config(base_load_curve=curve))


def test_base_load_curve_with_overlap_raises() -> None:
    curve = ((0, 12, 0.5), (10, 24, 2.0))
    with pytest.raises(ValueError):
        validate_optimization_config(valid_optimization_config(base_load_curve=curve))


def test_base_load_curve_negative_load_raises() -> None:
    curve = ((0, 12, -0.5), (12, 24, 2.0))
    with pytest.raises(ValueError):
        validate_optimization_config(valid_optimization_config(base_load_curve=curve))

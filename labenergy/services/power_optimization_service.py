"""Day- and week-level power optimization over a reconstructed energy profile."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from labenergy.domain.constraints import OptimizationConfig, validate_optimization_config
from labenergy.domain.models import (
    AlternativeSchedule,
    Appointment,
    DailyOptimization,
    EnergyProfile,
    HourlyConsumption,
    OptimizationResult,
    PreferredHour,
    TimeSlot,
    WeeklyOptimization,
    day_of_week,
)
from labenergy.domain.time_ranges import (
    MINUTES_PER_HOUR,
    format_minutes,
    overlap_minutes,
    overlaps,
    to_minutes,
)
from labenergy.repository.data_repository import DataRepository
from labenergy.services.availability_service import LaboratoryNotFoundError
from labenergy.utils.config import Settings, get_settings
from labenergy.utils.logger import get_logger


logger = get_logger(__name__)


HOURS_PER_DAY = 24
MORNING_BONUS_HOURS = range(8, 11)
MORNING_SCHEDULE_HOURS = range(8, 13)

STRATEGY_LOW_CONSUMPTION = "Low energy consumption slot selection"
STRATEGY_OPTIMAL_HOURS = "Uses optimal consumption hours"
STRATEGY_AVOIDS_PEAK = "Avoids peak consumption hours"
STRATEGY_SPARE_CAPACITY = "Capacity-aware optimization"


class OptimizationError(Exception):
    """Base exception for power optimization failures."""


class OptimizationValidationError(OptimizationError):
    """Raised when optimization input is missing or malformed."""


DateInput = Union[date, str]


def base_load_by_hour(curve: Sequence[tuple[int, int, float]]) -> np.ndarray:
    """Expand piecewise ``(start_hour, end_hour, kW)`` segments into 24 hourly values."""
    loads = np.zeros(HOURS_PER_DAY, dtype=float)
    for start_hour, end_hour, load in curve:
        loads[start_hour:end_hour] = load
    return loads


def _hour_bounds(hour: int) -> tuple[str, str]:
    return format_minutes(hour * MINUTES_PER_HOUR), format_minutes((hour + 1) * MINUTES_PER_HOUR)


def build_hourly_consumption(
    base_loads: np.ndarray,
    appointments: Sequence[Appointment],
    preferred_hours: Sequence[PreferredHour],
    off_peak_discount: float,
) -> np.ndarray:
    """Base load plus booked load per hour, discounted inside preferred windows."""
    hourly = np.array(base_loads, dtype=float)
    discount = np.ones(HOURS_PER_DAY, dtype=float)
    for hour in range(HOURS_PER_DAY):
        hour_start, hour_end = _hour_bounds(hour)
        hourly[hour] += sum(
            appointment.power_consumption
            for appointment in appointments
            if not appointment.is_cancelled
            and overlaps(hour_start, hour_end, appointment.start_time, appointment.end_time)
        )
        if any(
            overlaps(hour_start, hour_end, window.start_time, window.end_time)
            for window in preferred_hours
        ):
            discount[hour] = off_peak_discount
    return hourly * discount


def classify_hours(
    hourly: np.ndarray,
    peak_factor: float,
    optimal_factor: float,
) -> tuple[list[int], list[int]]:
    average = float(hourly.mean())
    peak_hours = [int(hour) for hour in np.flatnonzero(hourly > average * peak_factor)]
    optimal_hours = [int(hour) for hour in np.flatnonzero(hourly < average * optimal_factor)]
    return peak_hours, optimal_hours


def generate_hourly_windows(
    duration_minutes_value: int,
    work_start_minutes: int,
    work_end_minutes: int,
) -> list[tuple[str, str]]:
    """Candidate windows starting on each whole hour of the working day."""
    if duration_minutes_value <= 0:
        return []
    first_start = math.ceil(work_start_minutes / MINUTES_PER_HOUR) * MINUTES_PER_HOUR
    return [
        (format_minutes(start), format_minutes(start + duration_minutes_value))
        for start in range(first_start, work_end_minutes, MINUTES_PER_HOUR)
        if start + duration_minutes_value <= work_end_minutes
    ]


def slot_power(
    slot_start: str,
    slot_end: str,
    profile: EnergyProfile,
    machine_consumption: float,
    peak_hour_multiplier: float,
) -> float:
    """Sum of profile and machine load over the hours the slot covers.

    Each hour contributes in proportion to how much of it the slot occupies.
    """
    start_minutes = to_minutes(slot_start)
    end_minutes = to_minutes(slot_end)
    peak_hours = set(profile.peak_hours)
    total = 0.0
    for hour in range(start_minutes // MINUTES_PER_HOUR, math.ceil(end_minutes / MINUTES_PER_HOUR)):
        hour_start, hour_end = _hour_bounds(hour)
        fraction = overlap_minutes(slot_start, slot_end, hour_start, hour_end) / MINUTES_PER_HOUR
        if fraction <= 0:
            continue
        multiplier = peak_hour_multiplier if hour in peak_hours else 1.0
        total += (profile.consumption_at(hour) + machine_consumption) * multiplier * fraction
    return total


def start_hour(slot: TimeSlot) -> int:
    return to_minutes(slot.start_time) // MINUTES_PER_HOUR


def score_slot(slot: TimeSlot, profile: EnergyProfile, efficiency_threshold: float) -> float:
    hour = start_hour(slot)
    score = 100.0 - slot.power_consumption / efficiency_threshold * 20.0
    if hour in profile.optimal_hours:
        score += 15.0
    if hour in profile.peak_hours:
        score -= 25.0
    if hour in MORNING_BONUS_HOURS:
        score += 10.0
    return max(0.0, score)


def select_recommended_slots(
    slots: Sequence[TimeSlot],
    profile: EnergyProfile,
    *,
    max_power_budget: float,
    prioritize_efficiency: bool,
    efficiency_threshold: float,
    limit: int,
) -> list[TimeSlot]:
    within_budget = [slot for slot in slots if slot.power_consumption <= max_power_budget]
    if prioritize_efficiency:
        within_budget.sort(key=lambda slot: slot.power_consumption)
    else:
        within_budget.sort(
            key=lambda slot: score_slot(slot, profile, efficiency_threshold),
            reverse=True,
        )
    return within_budget[:limit]


def efficiency_score(
    slots: Sequence[TimeSlot],
    profile: EnergyProfile,
    efficiency_threshold: float,
) -> float:
    if not slots:
        return 0.0
    average = sum(slot.power_consumption for slot in slots) / len(slots)
    base_score = max(0.0, 100.0 - average / (efficiency_threshold * 2) * 100.0)
    optimal_bonus = 10.0 * sum(1 for slot in slots if start_hour(slot) in profile.optimal_hours)
    return min(100.0, base_score + optimal_bonus)


def optimization_strategies(
    slots: Sequence[TimeSlot],
    profile: EnergyProfile,
    efficiency_threshold: float,
) -> list[str]:
    strategies: list[str] = []
    if slots:
        average = sum(slot.power_consumption for slot in slots) / len(slots)
        if average < efficiency_threshold:
            strategies.append(STRATEGY_LOW_CONSUMPTION)
    if any(start_hour(slot) in profile.optimal_hours for slot in slots):
        strategies.append(STRATEGY_OPTIMAL_HOURS)
    if not any(start_hour(slot) in profile.peak_hours for slot in slots):
        strategies.append(STRATEGY_AVOIDS_PEAK)
    if profile.capacity_utilization < 70.0:
        strategies.append(STRATEGY_SPARE_CAPACITY)
    return strategies


def alternative_schedules(
    slots: Sequence[TimeSlot],
    max_power_budget: float,
    flexible_budget_factor: float,
) -> list[AlternativeSchedule]:
    """Three labelled schedule variants; variants with no slots are omitted."""
    by_power = sorted(slots, key=lambda slot: slot.power_consumption)
    candidates = (
        (
            "most-efficient",
            "Maximum energy efficiency",
            [slot for slot in by_power if slot.power_consumption <= max_power_budget][:2],
        ),
        (
            "morning",
            "Balanced morning schedule",
            [
                slot
                for slot in by_power
                if start_hour(slot) in MORNING_SCHEDULE_HOURS
                and slot.power_consumption <= max_power_budget
            ][:2],
        ),
        (
            "flexible",
            "Flexible timing with wider availability",
            sorted(
                (
                    slot
                    for slot in slots
                    if slot.power_consumption <= max_power_budget * flexible_budget_factor
                ),
                key=lambda slot: to_minutes(slot.start_time),
            )[:3],
        ),
    )
    return [
        AlternativeSchedule(
            id=schedule_id,
            description=description,
            schedule=tuple(schedule),
            total_power=sum(slot.power_consumption for slot in schedule),
        )
        for schedule_id, description, schedule in candidates
        if schedule
    ]


def _parse_date(value: DateInput, field_name: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise OptimizationValidationError(f"{field_name} is required")
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise OptimizationValidationError(f"{field_name} must follow YYYY-MM-DD format") from exc


class PowerOptimizationService:
    """Recommends low-consumption schedules for a laboratory under a power budget."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._config = self._build_config()
        self._base_loads = base_load_by_hour(self._config.base_load_curve)

    @property
    def config(self) -> OptimizationConfig:
        return self._config

    def _build_config(self) -> OptimizationConfig:
        config = OptimizationConfig(
            work_start_minutes=to_minutes(self._settings.availability_work_start),
            work_end_minutes=to_minutes(self._settings.availability_work_end),
            max_daily_capacity=self._settings.optimization_max_daily_capacity,
            efficiency_threshold=self._settings.optimization_efficiency_threshold,
            peak_hour_multiplier=self._settings.optimization_peak_hour_multiplier,
            off_peak_discount=self._settings.optimization_off_peak_discount,
            default_power_budget=self._settings.optimization_default_power_budget,
            default_machine_consumption=self._settings.optimization_default_machine_consumption,
            flexible_budget_factor=self._settings.optimization_flexible_budget_factor,
            peak_factor=self._settings.optimization_peak_factor,
            optimal_factor=self._settings.optimization_optimal_factor,
            recommended_slot_limit=self._settings.optimization_recommended_slot_limit,
            base_load_curve=tuple(self._settings.optimization_base_load_curve),
        )
        validate_optimization_config(config)
        return config

    def _validate_laboratory(self, laboratory_id: Optional[int]) -> None:
        if laboratory_id is None:
            raise OptimizationValidationError("laboratory_id is required")
        if laboratory_id <= 0:
            raise OptimizationValidationError("laboratory_id must be a positive integer")
        if self._repository.get_laboratory(laboratory_id) is None:
            raise LaboratoryNotFoundError(f"laboratory_id={laboratory_id} does not exist")

    def _average_machine_consumption(self, laboratory_id: int) -> float:
        machines = self._repository.list_machines(laboratory_id)
        if not machines:
            return self._config.default_machine_consumption
        return float(np.mean([machine.power_consumption for machine in machines]))

    def _build_profile(self, laboratory_id: int, target_date: date) -> EnergyProfile:
        day = target_date.isoformat()
        appointments = self._repository.list_appointments(
            start_date=day,
            end_date=day,
            laboratory_id=laboratory_id,
        )
        preferred_hours = self._repository.list_preferred_hours(day_of_week(target_date))
        hourly = build_hourly_consumption(
            self._base_loads,
            appointments,
            preferred_hours,
            self._config.off_peak_discount,
        )
        peak_hours, optimal_hours = classify_hours(
            hourly,
            self._config.peak_factor,
            self._config.optimal_factor,
        )
        total = float(hourly.sum())
        return EnergyProfile(
            laboratory_id=laboratory_id,
            date=target_date,
            hourly_consumption=tuple(
                HourlyConsumption(hour=hour, consumption=float(value))
                for hour, value in enumerate(hourly)
            ),
            peak_hours=tuple(peak_hours),
            optimal_hours=tuple(optimal_hours),
            total_day_consumption=total,
            capacity_utilization=total / self._config.max_daily_capacity * 100.0,
        )

    def generate_energy_profile(self, laboratory_id: Optional[int], date: DateInput) -> EnergyProfile:
        target_date = _parse_date(date)
        self._validate_laboratory(laboratory_id)
        profile = self._build_profile(laboratory_id, target_date)
        logger.info(
            "Energy profile generated | laboratory_id=%s | date=%s | total=%.2f | peak_hours=%s",
            laboratory_id,
            target_date.isoformat(),
            profile.total_day_consumption,
            list(profile.peak_hours),
        )
        return profile

    def optimize_scheduling(
        self,
        laboratory_id: Optional[int],
        date: DateInput,
        requested_duration_hours: float = 2.0,
        max_power_budget: Optional[float] = None,
        prioritize_efficiency: bool = True,
    ) -> OptimizationResult:
        target_date = _parse_date(date)
        if requested_duration_hours is None or requested_duration_hours <= 0:
            raise OptimizationValidationError("requested_duration_hours must be > 0")
        budget = self._config.default_power_budget if max_power_budget is None else max_power_budget
        if budget <= 0:
            raise OptimizationValidationError("max_power_budget must be > 0")
        self._validate_laboratory(laboratory_id)

        profile = self._build_profile(laboratory_id, target_date)
        machine_consumption = self._average_machine_consumption(laboratory_id)
        windows = generate_hourly_windows(
            int(round(requested_duration_hours * MINUTES_PER_HOUR)),
            self._config.work_start_minutes,
            self._config.work_end_minutes,
        )
        slots = [
            TimeSlot(
                start_time=slot_start,
                end_time=slot_end,
                available=True,
                power_consumption=slot_power(
                    slot_start,
                    slot_end,
                    profile,
                    machine_consumption,
                    self._config.peak_hour_multiplier,
                ),
            )
            for slot_start, slot_end in windows
        ]

        recommended = select_recommended_slots(
            slots,
            profile,
            max_power_budget=budget,
            prioritize_efficiency=prioritize_efficiency,
            efficiency_threshold=self._config.efficiency_threshold,
            limit=self._config.recommended_slot_limit,
        )
        power_savings = 0.0
        if recommended:
            worst = max(slot.power_consumption for slot in slots)
            best = min(slot.power_consumption for slot in recommended)
            power_savings = worst - best

        result = OptimizationResult(
            recommended_slots=tuple(recommended),
            power_savings=power_savings,
            efficiency_score=efficiency_score(
                recommended,
                profile,
                self._config.efficiency_threshold,
            ),
            optimization_strategies=tuple(
                optimization_strategies(recommended, profile, self._config.efficiency_threshold)
            ),
            alternative_schedules=tuple(
                alternative_schedules(slots, budget, self._config.flexible_budget_factor)
            ),
        )
        logger.info(
            "Scheduling optimized | laboratory_id=%s | date=%s | candidates=%s | recommended=%s | savings=%.2f | efficiency=%.1f",
            laboratory_id,
            target_date.isoformat(),
            len(slots),
            len(recommended),
            result.power_savings,
            result.efficiency_score,
        )
        return result

    def get_weekly_optimization(
        self,
        laboratory_id: Optional[int],
        start_date: DateInput,
        duration_hours: float = 2.0,
    ) -> WeeklyOptimization:
        """Optimize each weekday of the seven days starting at ``start_date``."""
        first_day = _parse_date(start_date, "start_date")
        daily: list[DailyOptimization] = []
        for offset in range(7):
            current_day = first_day + timedelta(days=offset)
            if current_day.weekday() >= 5:
                continue
            daily.append(
                DailyOptimization(
                    date=current_day,
                    optimization=self.optimize_scheduling(
                        laboratory_id,
                        current_day,
                        requested_duration_hours=duration_hours,
                        prioritize_efficiency=True,
                    ),
                )
            )

        frame = pd.DataFrame(
            [
                {
                    "date": item.date,
                    "power_savings": item.optimization.power_savings,
                    "efficiency_score": item.optimization.efficiency_score,
                }
                for item in daily
            ],
            columns=["date", "power_savings", "efficiency_score"],
        )
        if frame.empty:
            total_savings = 0.0
            average_efficiency = 0.0
            best_days: list[date] = []
        else:
            total_savings = float(frame["power_savings"].sum())
            average_efficiency = float(frame["efficiency_score"].mean())
            ranked = frame.sort_values("efficiency_score", ascending=False, kind="mergesort")
            best_days = list(ranked["date"].head(3))

        logger.info(
            "Weekly optimization completed | laboratory_id=%s | start_date=%s | days=%s | total_savings=%.2f",
            laboratory_id,
            first_day.isoformat(),
            len(daily),
            total_savings,
        )
        return WeeklyOptimization(
            daily_recommendations=tuple(daily),
            total_power_savings=total_savings,
            best_days=tuple(best_days),
            average_efficiency=average_efficiency,
        )

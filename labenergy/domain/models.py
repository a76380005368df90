"""Domain models for laboratory scheduling and power estimation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional


APPOINTMENT_STATUSES = ("pending", "confirmed", "cancelled")
CANCELLED_STATUS = "cancelled"


def day_of_week(value: date) -> int:
    """Weekday index with Sunday == 0 and Saturday == 6."""
    return (value.weekday() + 1) % 7


@dataclass(frozen=True)
class Laboratory:
    laboratory_id: int
    name: str
    location: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "laboratory_id": self.laboratory_id,
            "name": self.name,
            "location": self.location,
        }


@dataclass(frozen=True)
class Machine:
    machine_id: int
    laboratory_id: int
    name: str
    power_consumption: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "machine_id": self.machine_id,
            "laboratory_id": self.laboratory_id,
            "name": self.name,
            "power_consumption": self.power_consumption,
        }


@dataclass(frozen=True)
class PreferredHour:
    """Recurring weekly tariff window; ``day_of_week`` counts from Sunday == 0."""

    preferred_hour_id: int
    day_of_week: int
    start_time: str
    end_time: str
    power_consumption: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "preferred_hour_id": self.preferred_hour_id,
            "day_of_week": self.day_of_week,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "power_consumption": self.power_consumption,
        }


@dataclass(frozen=True)
class Appointment:
    appointment_id: int
    laboratory_id: int
    appointment_date: str
    start_time: str
    end_time: str
    power_consumption: float
    status: str
    machine_ids: tuple[int, ...] = ()
    user_name: str = ""
    user_email: str = ""
    purpose: str = ""
    created_at: str = ""

    @property
    def is_cancelled(self) -> bool:
        return self.status.lower() == CANCELLED_STATUS

    def to_dict(self) -> dict[str, Any]:
        return {
            "appointment_id": self.appointment_id,
            "laboratory_id": self.laboratory_id,
            "appointment_date": self.appointment_date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "power_consumption": self.power_consumption,
            "status": self.status,
            "machine_ids": list(self.machine_ids),
            "user_name": self.user_name,
            "user_email": self.user_email,
            "purpose": self.purpose,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class TimeSlot:
    start_time: str
    end_time: str
    available: bool
    power_consumption: float
    power_spike_percentage: float = 0.0
    machine_ids: tuple[int, ...] = ()
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "available": self.available,
            "power_consumption": self.power_consumption,
            "power_spike_percentage": self.power_spike_percentage,
            "machine_ids": list(self.machine_ids),
        }
        if self.reason is not None:
            payload["reason"] = self.reason
        return payload


@dataclass(frozen=True)
class EfficiencyGroup:
    id: str
    label: str
    power_spike_percentage: int
    time_range: str
    slots: tuple[TimeSlot, ...]
    average_power_consumption: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "power_spike_percentage": self.power_spike_percentage,
            "time_range": self.time_range,
            "slots": [slot.to_dict() for slot in self.slots],
            "average_power_consumption": self.average_power_consumption,
        }


@dataclass(frozen=True)
class Recommendations:
    best_slot: Optional[TimeSlot]
    energy_efficient_slots: tuple[TimeSlot, ...]
    alternative_dates: Optional[tuple[date, ...]] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "best_slot": self.best_slot.to_dict() if self.best_slot is not None else None,
            "energy_efficient_slots": [slot.to_dict() for slot in self.energy_efficient_slots],
            "alternative_dates": (
                [item.isoformat() for item in self.alternative_dates]
                if self.alternative_dates is not None
                else None
            ),
        }


@dataclass(frozen=True)
class AvailabilityResult:
    time_slots: tuple[TimeSlot, ...]
    efficiency_groups: tuple[EfficiencyGroup, ...]
    recommendations: Recommendations
    total_day_consumption: float
    peak_hours: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "time_slots": [slot.to_dict() for slot in self.time_slots],
            "efficiency_groups": [group.to_dict() for group in self.efficiency_groups],
            "recommendations": self.recommendations.to_dict(),
            "total_day_consumption": self.total_day_consumption,
            "peak_hours": list(self.peak_hours),
        }


@dataclass(frozen=True)
class DailyOptimalSlots:
    date: date
    slots: tuple[TimeSlot, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "slots": [slot.to_dict() for slot in self.slots],
        }


@dataclass(frozen=True)
class HourlyConsumption:
    hour: int
    consumption: float


@dataclass(frozen=True)
class EnergyProfile:
    laboratory_id: int
    date: date
    hourly_consumption: tuple[HourlyConsumption, ...]
    peak_hours: tuple[int, ...]
    optimal_hours: tuple[int, ...]
    total_day_consumption: float
    capacity_utilization: float

    def consumption_at(self, hour: int) -> float:
        for item in self.hourly_consumption:
            if item.hour == hour:
                return item.consumption
        return 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "laboratory_id": self.laboratory_id,
            "date": self.date.isoformat(),
            "hourly_consumption": [
                {"hour": item.hour, "consumption": item.consumption}
                for item in self.hourly_consumption
            ],
            "peak_hours": list(self.peak_hours),
            "optimal_hours": list(self.optimal_hours),
            "total_day_consumption": self.total_day_consumption,
            "capacity_utilization": self.capacity_utilization,
        }


@dataclass(frozen=True)
class AlternativeSchedule:
    id: str
    description: str
    schedule: tuple[TimeSlot, ...]
    total_power: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "schedule": [slot.to_dict() for slot in self.schedule],
            "total_power": self.total_power,
        }


@dataclass(frozen=True)
class OptimizationResult:
    recommended_slots: tuple[TimeSlot, ...]
    power_savings: float
    efficiency_score: float
    optimization_strategies: tuple[str, ...]
    alternative_schedules: tuple[AlternativeSchedule, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "recommended_slots": [slot.to_dict() for slot in self.recommended_slots],
            "power_savings": self.power_savings,
            "efficiency_score": self.efficiency_score,
            "optimization_strategies": list(self.optimization_strategies),
            "alternative_schedules": [item.to_dict() for item in self.alternative_schedules],
        }


@dataclass(frozen=True)
class DailyOptimization:
    date: date
    optimization: OptimizationResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "optimization": self.optimization.to_dict(),
        }


@dataclass(frozen=True)
class WeeklyOptimization:
    daily_recommendations: tuple[DailyOptimization, ...]
    total_power_savings: float
    best_days: tuple[date, ...]
    average_efficiency: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily_recommendations": [item.to_dict() for item in self.daily_recommendations],
            "weekly_insights": {
                "total_power_savings": self.total_power_savings,
                "best_days": [item.isoformat() for item in self.best_days],
                "average_efficiency": self.average_efficiency,
            },
        }

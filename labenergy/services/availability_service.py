"""Availability checks with per-slot power estimation for laboratory machines."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence, Union

from labenergy.domain.constraints import AvailabilityConfig, validate_availability_config
from labenergy.domain.models import (
    Appointment,
    AvailabilityResult,
    DailyOptimalSlots,
    Machine,
    PreferredHour,
    TimeSlot,
    day_of_week,
)
from labenergy.domain.time_ranges import (
    duration_minutes,
    format_minutes,
    overlap_minutes,
    overlaps,
    to_minutes,
)
from labenergy.repository.data_repository import DataRepository
from labenergy.services.efficiency_service import (
    build_recommendations,
    energy_efficient_slots,
    group_slots_by_efficiency,
    rank_slots,
)
from labenergy.utils.config import Settings, get_settings
from labenergy.utils.logger import get_logger


logger = get_logger(__name__)


BOOKED_REASON = "Horario ya reservado"


class AvailabilityError(Exception):
    """Base exception for availability workflow failures."""


class AvailabilityValidationError(AvailabilityError):
    """Raised when availability input is missing or malformed."""


class LaboratoryNotFoundError(AvailabilityError):
    """Raised when a laboratory id does not exist in persisted state."""


class MachineNotFoundError(AvailabilityError):
    """Raised when one or more machine ids do not exist in persisted state."""


@dataclass(frozen=True)
class DaySnapshot:
    """Everything read from storage for one availability computation."""

    machines: tuple[Machine, ...]
    preferred_hours: tuple[PreferredHour, ...]
    load_appointments: tuple[Appointment, ...]
    conflict_appointments: tuple[Appointment, ...]


def high_consumption_reason(power: float) -> str:
    return f"Alto consumo energético ({power:.1f} kW)"


def generate_candidate_windows(
    duration_minutes_value: int,
    work_start_minutes: int,
    work_end_minutes: int,
    increment_minutes: int,
) -> list[tuple[str, str]]:
    """Enumerate fixed-length windows stepping from the start of the working day."""
    if duration_minutes_value <= 0 or increment_minutes <= 0:
        return []
    windows: list[tuple[str, str]] = []
    start = work_start_minutes
    while start + duration_minutes_value <= work_end_minutes:
        windows.append((format_minutes(start), format_minutes(start + duration_minutes_value)))
        start += increment_minutes
    return windows


def machine_base_load(machines: Iterable[Machine]) -> float:
    return sum(machine.power_consumption for machine in machines)


def preferred_hour_contribution(
    slot_start: str,
    slot_end: str,
    preferred_hours: Iterable[PreferredHour],
) -> float:
    """Tariff load weighted by the share of the slot each preferred window covers."""
    slot_length = duration_minutes(slot_start, slot_end)
    if slot_length <= 0:
        return 0.0
    total = 0.0
    for window in preferred_hours:
        shared = overlap_minutes(slot_start, slot_end, window.start_time, window.end_time)
        if shared:
            total += shared / slot_length * window.power_consumption
    return total


def concurrent_appointment_contribution(
    slot_start: str,
    slot_end: str,
    appointments: Iterable[Appointment],
) -> float:
    """Booked load weighted by the share of each appointment falling inside the slot."""
    total = 0.0
    for appointment in appointments:
        if appointment.is_cancelled:
            continue
        appointment_length = duration_minutes(appointment.start_time, appointment.end_time)
        if appointment_length <= 0:
            continue
        shared = overlap_minutes(
            slot_start,
            slot_end,
            appointment.start_time,
            appointment.end_time,
        )
        if shared:
            total += shared / appointment_length * appointment.power_consumption
    return total


def estimate_slot_power(
    slot_start: str,
    slot_end: str,
    machines: Iterable[Machine],
    preferred_hours: Iterable[PreferredHour],
    appointments: Iterable[Appointment],
) -> float:
    return (
        machine_base_load(machines)
        + preferred_hour_contribution(slot_start, slot_end, preferred_hours)
        + concurrent_appointment_contribution(slot_start, slot_end, appointments)
    )


def has_machine_conflict(
    slot_start: str,
    slot_end: str,
    appointments: Iterable[Appointment],
    machine_ids: Iterable[int],
) -> bool:
    """True when an active appointment on a requested machine overlaps the slot."""
    requested = set(machine_ids)
    for appointment in appointments:
        if appointment.is_cancelled:
            continue
        if requested.isdisjoint(appointment.machine_ids):
            continue
        if overlaps(slot_start, slot_end, appointment.start_time, appointment.end_time):
            return True
    return False


def build_time_slots(
    windows: Sequence[tuple[str, str]],
    snapshot: DaySnapshot,
    machine_ids: Sequence[int],
    peak_threshold: float,
) -> list[TimeSlot]:
    slots: list[TimeSlot] = []
    for slot_start, slot_end in windows:
        power = estimate_slot_power(
            slot_start,
            slot_end,
            snapshot.machines,
            snapshot.preferred_hours,
            snapshot.load_appointments,
        )
        blocked = has_machine_conflict(
            slot_start,
            slot_end,
            snapshot.conflict_appointments,
            machine_ids,
        )
        reason: Optional[str] = None
        if blocked:
            reason = BOOKED_REASON
        elif power > peak_threshold:
            reason = high_consumption_reason(power)
        slots.append(
            TimeSlot(
                start_time=slot_start,
                end_time=slot_end,
                available=not blocked,
                power_consumption=power,
                machine_ids=tuple(machine_ids),
                reason=reason,
            )
        )
    return slots


def total_day_consumption(
    load_appointments: Iterable[Appointment],
    slots: Iterable[TimeSlot],
    booking_probability: float,
) -> float:
    """Booked load plus the expected load of slots that may still be booked."""
    booked = sum(
        appointment.power_consumption
        for appointment in load_appointments
        if not appointment.is_cancelled
    )
    expected = sum(slot.power_consumption for slot in slots if slot.available)
    return booked + booking_probability * expected


def peak_hour_labels(slots: Iterable[TimeSlot], peak_threshold: float) -> list[str]:
    return [
        f"{slot.start_time}-{slot.end_time}"
        for slot in slots
        if slot.power_consumption > peak_threshold
    ]


DateInput = Union[date, str]


def _parse_date(value: DateInput, field_name: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise AvailabilityValidationError(f"{field_name} is required")
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise AvailabilityValidationError(f"{field_name} must follow YYYY-MM-DD format") from exc


def normalize_machine_ids(
    machine_ids: Optional[Iterable[int]],
    machine_id: Optional[int] = None,
) -> list[int]:
    """Merge the single and plural machine parameters into one sorted id list."""
    merged: set[int] = set()
    if machine_ids is not None:
        merged.update(int(item) for item in machine_ids)
    if machine_id is not None:
        merged.add(int(machine_id))
    if not merged:
        raise AvailabilityValidationError("at least one machine id is required")
    if any(item <= 0 for item in merged):
        raise AvailabilityValidationError("machine ids must be positive integers")
    return sorted(merged)


class AvailabilityService:
    """Scores every candidate slot of a day for a set of laboratory machines."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._config = self._build_config()

    @property
    def config(self) -> AvailabilityConfig:
        return self._config

    @property
    def optimal_slot_days(self) -> int:
        return self._settings.availability_optimal_slot_days

    def _build_config(self) -> AvailabilityConfig:
        config = AvailabilityConfig(
            work_start_minutes=to_minutes(self._settings.availability_work_start),
            work_end_minutes=to_minutes(self._settings.availability_work_end),
            slot_increment_minutes=self._settings.availability_slot_increment_minutes,
            default_duration_hours=self._settings.availability_default_duration_hours,
            peak_consumption_threshold=self._settings.availability_peak_consumption_threshold,
            efficient_slot_max_power=self._settings.availability_efficient_slot_max_power,
            efficient_slot_limit=self._settings.availability_efficient_slot_limit,
            best_slot_power_tolerance=self._settings.availability_best_slot_power_tolerance,
            min_available_slots=self._settings.availability_min_available_slots,
            alternative_date_count=self._settings.availability_alternative_date_count,
            booking_probability=self._settings.availability_booking_probability,
            load_scope=self._settings.availability_load_scope,
        )
        validate_availability_config(config)
        return config

    def _validate_laboratory(self, laboratory_id: Optional[int]) -> None:
        if laboratory_id is None:
            raise AvailabilityValidationError("laboratory_id is required")
        if laboratory_id <= 0:
            raise AvailabilityValidationError("laboratory_id must be a positive integer")
        if self._repository.get_laboratory(laboratory_id) is None:
            raise LaboratoryNotFoundError(f"laboratory_id={laboratory_id} does not exist")

    def _resolve_machines(self, laboratory_id: int, machine_ids: Sequence[int]) -> list[Machine]:
        machines = self._repository.get_machines(machine_ids)
        found_ids = {machine.machine_id for machine in machines}
        missing = [machine_id for machine_id in machine_ids if machine_id not in found_ids]
        if missing:
            raise MachineNotFoundError(f"machine ids {missing} do not exist")
        foreign = [machine.machine_id for machine in machines if machine.laboratory_id != laboratory_id]
        if foreign:
            raise AvailabilityValidationError(
                f"machine ids {foreign} do not belong to laboratory_id={laboratory_id}"
            )
        return machines

    def _duration_minutes(self, duration_hours: Optional[float]) -> int:
        hours = self._config.default_duration_hours if duration_hours is None else duration_hours
        if hours <= 0:
            raise AvailabilityValidationError("duration_hours must be > 0")
        return int(round(hours * 60))

    def _load_snapshot(
        self,
        target_date: date,
        laboratory_id: int,
        machines: Sequence[Machine],
    ) -> DaySnapshot:
        day = target_date.isoformat()
        scoped_laboratory = laboratory_id if self._config.load_scope == "laboratory" else None
        load_appointments = self._repository.list_appointments(
            start_date=day,
            end_date=day,
            laboratory_id=scoped_laboratory,
        )
        conflict_appointments = self._repository.list_appointments(
            start_date=day,
            end_date=day,
            laboratory_id=laboratory_id,
            machine_ids=[machine.machine_id for machine in machines],
        )
        return DaySnapshot(
            machines=tuple(machines),
            preferred_hours=tuple(
                self._repository.list_preferred_hours(day_of_week(target_date))
            ),
            load_appointments=tuple(load_appointments),
            conflict_appointments=tuple(conflict_appointments),
        )

    def _score_day(
        self,
        target_date: date,
        laboratory_id: int,
        machines: Sequence[Machine],
        slot_minutes: int,
    ) -> tuple[DaySnapshot, list[TimeSlot]]:
        windows = generate_candidate_windows(
            slot_minutes,
            self._config.work_start_minutes,
            self._config.work_end_minutes,
            self._config.slot_increment_minutes,
        )
        snapshot = self._load_snapshot(target_date, laboratory_id, machines)
        slots = build_time_slots(
            windows,
            snapshot,
            [machine.machine_id for machine in machines],
            self._config.peak_consumption_threshold,
        )
        return snapshot, slots

    def check_availability(
        self,
        date: DateInput,
        laboratory_id: Optional[int],
        machine_ids: Optional[Iterable[int]] = None,
        machine_id: Optional[int] = None,
        duration_hours: Optional[float] = None,
    ) -> AvailabilityResult:
        target_date = _parse_date(date)
        requested_ids = normalize_machine_ids(machine_ids, machine_id)
        slot_minutes = self._duration_minutes(duration_hours)
        self._validate_laboratory(laboratory_id)
        machines = self._resolve_machines(laboratory_id, requested_ids)

        snapshot, slots = self._score_day(target_date, laboratory_id, machines, slot_minutes)
        ranked = rank_slots(slots)
        groups = group_slots_by_efficiency(ranked)
        recommendations = build_recommendations(
            ranked,
            target_date,
            efficient_max_power=self._config.efficient_slot_max_power,
            efficient_limit=self._config.efficient_slot_limit,
            best_slot_tolerance=self._config.best_slot_power_tolerance,
            min_available_slots=self._config.min_available_slots,
            alternative_date_count=self._config.alternative_date_count,
        )
        result = AvailabilityResult(
            time_slots=tuple(ranked),
            efficiency_groups=tuple(groups),
            recommendations=recommendations,
            total_day_consumption=total_day_consumption(
                snapshot.load_appointments,
                slots,
                self._config.booking_probability,
            ),
            peak_hours=tuple(peak_hour_labels(slots, self._config.peak_consumption_threshold)),
        )
        logger.info(
            "Availability computed | laboratory_id=%s | date=%s | machines=%s | slots=%s | available=%s | groups=%s",
            laboratory_id,
            target_date.isoformat(),
            requested_ids,
            len(slots),
            sum(1 for slot in slots if slot.available),
            len(groups),
        )
        return result

    def get_optimal_slots(
        self,
        laboratory_id: Optional[int],
        machine_ids: Optional[Iterable[int]],
        start_date: DateInput,
        days: Optional[int] = None,
        duration_hours: Optional[float] = None,
    ) -> list[DailyOptimalSlots]:
        """Low-power available slots for each day of a horizon, skipping days without any."""
        first_day = _parse_date(start_date, "start_date")
        horizon = self.optimal_slot_days if days is None else days
        if horizon <= 0:
            raise AvailabilityValidationError("days must be > 0")
        requested_ids = normalize_machine_ids(machine_ids)
        slot_minutes = self._duration_minutes(duration_hours)
        self._validate_laboratory(laboratory_id)
        machines = self._resolve_machines(laboratory_id, requested_ids)

        results: list[DailyOptimalSlots] = []
        for offset in range(horizon):
            current_day = first_day + timedelta(days=offset)
            _, slots = self._score_day(current_day, laboratory_id, machines, slot_minutes)
            best = energy_efficient_slots(
                [slot for slot in rank_slots(slots) if slot.available],
                self._config.efficient_slot_max_power,
                self._settings.availability_optimal_slots_per_day,
            )
            if best:
                results.append(DailyOptimalSlots(date=current_day, slots=tuple(best)))

        logger.info(
            "Optimal slots computed | laboratory_id=%s | start_date=%s | days=%s | days_with_slots=%s",
            laboratory_id,
            first_day.isoformat(),
            horizon,
            len(results),
        )
        return results

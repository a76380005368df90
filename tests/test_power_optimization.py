from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime

import numpy as np
import pytest

from labenergy.domain.models import EnergyProfile, HourlyConsumption, TimeSlot
from labenergy.repository.data_repository import DataRepository
from labenergy.services.availability_service import LaboratoryNotFoundError
from labenergy.services.power_optimization_service import (
    STRATEGY_AVOIDS_PEAK,
    STRATEGY_SPARE_CAPACITY,
    OptimizationValidationError,
    PowerOptimizationService,
    base_load_by_hour,
    generate_hourly_windows,
    score_slot,
    slot_power,
)
from labenergy.utils.config import DEFAULT_BASE_LOAD_CURVE, get_settings


MONDAY = date(2026, 3, 2)


def _build_service(tmp_path) -> tuple[PowerOptimizationService, DataRepository]:
    get_settings.cache_clear()
    settings = replace(
        get_settings(),
        database_path=tmp_path / "optimization.db",
        synthetic_seed_enabled=False,
    )
    repository = DataRepository(settings)
    repository.initialize_database()
    return PowerOptimizationService(repository=repository, settings=settings), repository


def _laboratory_with_afternoon_booking(repository: DataRepository) -> int:
    """Machines averaging 1 kW plus a 6 kW booking from 14:00 to 16:00."""
    lab_id = repository.create_laboratory("Physics", "Block A")
    low = repository.create_machine(lab_id, "Balance", 0.5)
    repository.create_machine(lab_id, "Spectrometer", 1.5)
    repository.create_appointment(
        laboratory_id=lab_id,
        appointment_date=MONDAY.isoformat(),
        start_time="14:00",
        end_time="16:00",
        machine_ids=[low],
        status="confirmed",
        power_consumption=6.0,
    )
    return lab_id


def _flat_profile(peak_hours=(), optimal_hours=()) -> EnergyProfile:
    return EnergyProfile(
        laboratory_id=1,
        date=MONDAY,
        hourly_consumption=tuple(HourlyConsumption(hour, 2.0) for hour in range(24)),
        peak_hours=tuple(peak_hours),
        optimal_hours=tuple(optimal_hours),
        total_day_consumption=48.0,
        capacity_utilization=96.0,
    )


def test_base_load_curve_expands_to_hours() -> None:
    loads = base_load_by_hour(DEFAULT_BASE_LOAD_CURVE)

    assert loads.shape == (24,)
    assert loads[0] == 0.5
    assert loads[7] == 1.0
    assert loads[8] == 2.0
    assert loads[17] == 2.0
    assert loads[18] == 1.5
    assert loads[23] == 0.8
    assert float(np.sum(loads)) == pytest.approx(32.6)


def test_hourly_windows_start_on_whole_hours() -> None:
    windows = generate_hourly_windows(120, 480, 1080)

    assert windows[0] == ("08:00", "10:00")
    assert windows[-1] == ("16:00", "18:00")
    assert len(windows) == 9
    assert generate_hourly_windows(660, 480, 1080) == []


def test_slot_power_weights_partial_hours() -> None:
    profile = _flat_profile(peak_hours=(9,))

    full = slot_power("08:00", "10:00", profile, 1.0, 1.5)
    partial = slot_power("08:00", "09:30", profile, 1.0, 1.5)

    assert full == pytest.approx(3.0 + 4.5)
    assert partial == pytest.approx(3.0 + 4.5 * 0.5)


def test_score_slot_combines_bonuses_and_penalties() -> None:
    profile = _flat_profile(peak_hours=(14,), optimal_hours=(9,))
    morning = TimeSlot("09:00", "10:00", True, 3.0)
    afternoon = TimeSlot("14:00", "15:00", True, 3.0)
    heavy = TimeSlot("12:00", "13:00", True, 30.0)

    assert score_slot(morning, profile, 3.0) == pytest.approx(105.0)
    assert score_slot(afternoon, profile, 3.0) == pytest.approx(55.0)
    assert score_slot(heavy, profile, 3.0) == 0.0


def test_energy_profile_marks_booked_hours_as_peak(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = _laboratory_with_afternoon_booking(repository)

    profile = service.generate_energy_profile(lab_id, MONDAY)

    assert len(profile.hourly_consumption) == 24
    assert profile.consumption_at(14) == pytest.approx(8.0)
    assert profile.consumption_at(10) == pytest.approx(2.0)
    assert profile.total_day_consumption == pytest.approx(44.6)
    assert profile.peak_hours == (14, 15)
    assert profile.optimal_hours == (0, 1, 2, 3, 4, 5, 6, 7, 22, 23)
    assert profile.capacity_utilization == pytest.approx(89.2)


def test_energy_profile_accepts_datetime_input(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = _laboratory_with_afternoon_booking(repository)

    profile = service.generate_energy_profile(lab_id, datetime(2026, 3, 2, 10, 0))

    assert profile.date == MONDAY
    assert profile.consumption_at(14) == pytest.approx(8.0)
    assert profile.peak_hours == (14, 15)


def test_energy_profile_discounts_preferred_hours(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = repository.create_laboratory("Physics", "Block A")
    repository.create_preferred_hour(1, "08:00", "10:00", 1.0)

    profile = service.generate_energy_profile(lab_id, MONDAY)

    assert profile.consumption_at(8) == pytest.approx(1.6)
    assert profile.consumption_at(9) == pytest.approx(1.6)
    assert profile.consumption_at(10) == pytest.approx(2.0)
    tuesday = service.generate_energy_profile(lab_id, date(2026, 3, 3))
    assert tuesday.consumption_at(8) == pytest.approx(2.0)


def test_energy_profile_counts_partially_covered_hours(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = repository.create_laboratory("Physics", "Block A")
    machine_id = repository.create_machine(lab_id, "Spectrometer", 1.5)
    repository.create_appointment(
        laboratory_id=lab_id,
        appointment_date=MONDAY.isoformat(),
        start_time="09:00",
        end_time="10:30",
        machine_ids=[machine_id],
    )

    profile = service.generate_energy_profile(lab_id, MONDAY)

    assert profile.consumption_at(9) == pytest.approx(3.5)
    assert profile.consumption_at(10) == pytest.approx(3.5)
    assert profile.consumption_at(11) == pytest.approx(2.0)


def test_optimize_scheduling_prefers_low_power_slots(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = _laboratory_with_afternoon_booking(repository)

    result = service.optimize_scheduling(lab_id, MONDAY, requested_duration_hours=1)

    assert [slot.start_time for slot in result.recommended_slots] == ["08:00", "09:00", "10:00"]
    assert all(slot.power_consumption == pytest.approx(3.0) for slot in result.recommended_slots)
    assert result.power_savings == pytest.approx(10.5)
    assert result.efficiency_score == pytest.approx(50.0)
    assert result.optimization_strategies == (STRATEGY_AVOIDS_PEAK,)


def test_optimize_scheduling_builds_alternative_schedules(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = _laboratory_with_afternoon_booking(repository)

    result = service.optimize_scheduling(lab_id, MONDAY, requested_duration_hours=1)

    schedules = {item.id: item for item in result.alternative_schedules}
    assert list(schedules) == ["most-efficient", "morning", "flexible"]
    assert [slot.start_time for slot in schedules["most-efficient"].schedule] == ["08:00", "09:00"]
    assert schedules["most-efficient"].total_power == pytest.approx(6.0)
    assert len(schedules["morning"].schedule) == 2
    assert [slot.start_time for slot in schedules["flexible"].schedule] == ["08:00", "09:00", "10:00"]
    assert schedules["flexible"].total_power == pytest.approx(9.0)


def test_score_ordering_when_efficiency_is_not_prioritized(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = _laboratory_with_afternoon_booking(repository)
    profile = service.generate_energy_profile(lab_id, MONDAY)

    result = service.optimize_scheduling(
        lab_id,
        MONDAY,
        requested_duration_hours=1,
        max_power_budget=20.0,
        prioritize_efficiency=False,
    )

    scores = [score_slot(slot, profile, 3.0) for slot in result.recommended_slots]
    assert scores == sorted(scores, reverse=True)
    assert [slot.start_time for slot in result.recommended_slots] == ["08:00", "09:00", "10:00"]


def test_budget_excluding_every_slot_yields_empty_recommendation(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = repository.create_laboratory("Computing", "Block C")
    repository.create_machine(lab_id, "Compute Server", 4.0)

    result = service.optimize_scheduling(lab_id, MONDAY, requested_duration_hours=2, max_power_budget=1.0)

    assert result.recommended_slots == ()
    assert result.power_savings == 0.0
    assert result.efficiency_score == 0.0
    assert result.alternative_schedules == ()
    assert STRATEGY_AVOIDS_PEAK in result.optimization_strategies


def test_laboratory_without_machines_uses_default_consumption(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = repository.create_laboratory("Empty", "Block D")

    result = service.optimize_scheduling(lab_id, MONDAY, requested_duration_hours=1, max_power_budget=20.0)

    # idle working hours are peak: (2.0 base + 2.0 default machine) * 1.5
    assert result.recommended_slots[0].power_consumption == pytest.approx(6.0)
    assert STRATEGY_SPARE_CAPACITY in result.optimization_strategies


def test_overlong_duration_yields_empty_result(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = _laboratory_with_afternoon_booking(repository)

    result = service.optimize_scheduling(lab_id, MONDAY, requested_duration_hours=11)

    assert result.recommended_slots == ()
    assert result.power_savings == 0.0


def test_optimization_input_validation(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = repository.create_laboratory("Physics", "Block A")

    with pytest.raises(OptimizationValidationError):
        service.optimize_scheduling(lab_id, MONDAY, requested_duration_hours=0)
    with pytest.raises(OptimizationValidationError):
        service.optimize_scheduling(lab_id, MONDAY, max_power_budget=0)
    with pytest.raises(OptimizationValidationError):
        service.optimize_scheduling(lab_id, "not-a-date")
    with pytest.raises(LaboratoryNotFoundError):
        service.optimize_scheduling(999, MONDAY)
    with pytest.raises(LaboratoryNotFoundError):
        service.generate_energy_profile(999, MONDAY)


def test_weekly_optimization_skips_weekends(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = repository.create_laboratory("Physics", "Block A")
    repository.create_machine(lab_id, "Spectrometer", 1.0)
    friday = date(2026, 3, 6)

    weekly = service.get_weekly_optimization(lab_id, friday, duration_hours=1)

    assert [item.date for item in weekly.daily_recommendations] == [
        date(2026, 3, 6),
        date(2026, 3, 9),
        date(2026, 3, 10),
        date(2026, 3, 11),
        date(2026, 3, 12),
    ]
    assert weekly.best_days == (date(2026, 3, 6), date(2026, 3, 9), date(2026, 3, 10))
    assert weekly.average_efficiency == pytest.approx(25.0)
    assert weekly.total_power_savings == pytest.approx(0.0)


def test_weekly_best_days_rank_by_efficiency(tmp_path) -> None:
    service, repository = _build_service(tmp_path)
    lab_id = _laboratory_with_afternoon_booking(repository)

    weekly = service.get_weekly_optimization(lab_id, MONDAY, duration_hours=1)

    scores = {
        item.date: item.optimization.efficiency_score for item in weekly.daily_recommendations
    }
    assert scores[MONDAY] == pytest.approx(50.0)
    assert weekly.best_days[0] == MONDAY
    assert weekly.total_power_savings == pytest.approx(10.5)
    assert weekly.to_dict()["weekly_insights"]["best_days"][0] == MONDAY.isoformat()

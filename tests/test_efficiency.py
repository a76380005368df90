from __future__ import annotations

from datetime import date

import pytest

from labenergy.domain.models import TimeSlot
from labenergy.services.efficiency_service import (
    EFFICIENCY_BANDS,
    band_for,
    build_recommendations,
    group_slots_by_efficiency,
    next_weekdays,
    rank_slots,
    round_half_up,
    select_best_slot,
)


def _slot(start: str, end: str, power: float, available: bool = True) -> TimeSlot:
    return TimeSlot(start_time=start, end_time=end, available=available, power_consumption=power)


def _mixed_slots() -> list[TimeSlot]:
    return [
        _slot("14:00", "16:00", 2.0),
        _slot("10:00", "12:00", 1.0),
        _slot("10:30", "12:30", 1.05),
        _slot("11:00", "13:00", 1.4),
        _slot("08:00", "10:00", 3.0),
        _slot("15:00", "17:00", 7.0),
    ]


def test_rank_slots_sorts_by_power_then_start_time() -> None:
    slots = [_slot("09:00", "11:00", 2.0), _slot("08:00", "10:00", 2.0), _slot("12:00", "14:00", 1.0)]

    ranked = rank_slots(slots)

    assert [slot.start_time for slot in ranked] == ["12:00", "08:00", "09:00"]


def test_spike_percentages_are_non_decreasing_in_power_order() -> None:
    ranked = rank_slots(_mixed_slots())

    spikes = [slot.power_spike_percentage for slot in ranked]
    assert spikes == sorted(spikes)


def test_cheapest_slots_anchor_spike_at_zero() -> None:
    slots = _mixed_slots() + [_slot("16:00", "18:00", 1.0)]

    ranked = rank_slots(slots)

    cheapest = [slot for slot in ranked if slot.power_consumption == 1.0]
    assert len(cheapest) == 2
    assert all(slot.power_spike_percentage == 0.0 for slot in cheapest)


def test_spike_is_relative_increase_over_cheapest() -> None:
    ranked = rank_slots(_mixed_slots())

    by_start = {slot.start_time: slot.power_spike_percentage for slot in ranked}
    assert by_start["14:00"] == pytest.approx(100.0)
    assert by_start["08:00"] == pytest.approx(200.0)
    assert by_start["15:00"] == pytest.approx(600.0)


def test_zero_power_cheapest_slot_reports_raw_power_as_spike() -> None:
    ranked = rank_slots([_slot("08:00", "10:00", 0.0), _slot("09:00", "11:00", 12.0)])

    assert ranked[0].power_spike_percentage == 0.0
    assert ranked[1].power_spike_percentage == 12.0


def test_rank_slots_of_empty_input_is_empty() -> None:
    assert rank_slots([]) == []
    assert group_slots_by_efficiency([]) == []


def test_bands_cover_fixed_thresholds() -> None:
    assert [band.id for band in EFFICIENCY_BANDS] == ["optimal", "good", "regular", "high", "very-high"]
    assert band_for(0.0).label == "Optimal"
    assert band_for(9.99).id == "optimal"
    assert band_for(10.0).id == "good"
    assert band_for(30.0).id == "regular"
    assert band_for(50.0).id == "high"
    assert band_for(499.9).id == "high"
    assert band_for(500.0).label == "Very High"


def test_grouping_is_total_and_disjoint() -> None:
    ranked = rank_slots(_mixed_slots())

    groups = group_slots_by_efficiency(ranked)

    grouped = [slot for group in groups for slot in group.slots]
    assert len(grouped) == len(ranked)
    assert set(grouped) == set(ranked)


def test_empty_bands_are_omitted_and_order_is_fixed() -> None:
    groups = group_slots_by_efficiency(rank_slots(_mixed_slots()))

    assert [group.id for group in groups] == ["optimal", "regular", "high", "very-high"]


def test_group_time_range_is_recomputed_by_time() -> None:
    groups = {group.id: group for group in group_slots_by_efficiency(rank_slots(_mixed_slots()))}

    high = groups["high"]
    assert [slot.start_time for slot in high.slots] == ["14:00", "08:00"]
    assert high.time_range == "08:00 - 16:00"
    assert high.average_power_consumption == pytest.approx(2.5)
    assert high.power_spike_percentage == 150


def test_group_spike_uses_half_up_rounding() -> None:
    groups = {group.id: group for group in group_slots_by_efficiency(rank_slots(_mixed_slots()))}

    assert groups["optimal"].power_spike_percentage == 3
    assert groups["regular"].power_spike_percentage == 40


def test_round_half_up() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(1.49) == 1
    assert round_half_up(1.25, 1) == pytest.approx(1.3)


def test_best_slot_prefers_earliest_within_tolerance() -> None:
    slots = [_slot("08:00", "10:00", 1.4), _slot("09:00", "11:00", 1.0), _slot("10:00", "12:00", 1.6)]

    best = select_best_slot(slots, power_tolerance=0.5)

    assert best is not None
    assert best.start_time == "08:00"


def test_best_slot_outside_tolerance_falls_back_to_cheapest() -> None:
    slots = [_slot("08:00", "10:00", 2.0), _slot("09:00", "11:00", 1.0)]

    best = select_best_slot(slots, power_tolerance=0.5)

    assert best is not None
    assert best.start_time == "09:00"


def test_best_slot_absent_without_available_slots() -> None:
    assert select_best_slot([], power_tolerance=0.5) is None


def test_recommendations_only_consider_available_slots() -> None:
    slots = [
        _slot("08:00", "10:00", 0.5, available=False),
        _slot("09:00", "11:00", 2.5),
        _slot("10:00", "12:00", 1.5),
        _slot("11:00", "13:00", 3.5),
        _slot("12:00", "14:00", 2.0),
        _slot("13:00", "15:00", 2.9),
    ]

    recommendations = build_recommendations(
        slots,
        date(2026, 3, 2),
        efficient_max_power=3.0,
        efficient_limit=3,
        best_slot_tolerance=0.5,
        min_available_slots=3,
        alternative_date_count=3,
    )

    assert [slot.start_time for slot in recommendations.energy_efficient_slots] == [
        "10:00",
        "12:00",
        "09:00",
    ]
    assert recommendations.best_slot is not None
    assert recommendations.best_slot.start_time == "10:00"
    assert recommendations.alternative_dates is None


def test_friday_alternative_dates_skip_weekend() -> None:
    friday = date(2026, 3, 6)
    slots = [_slot("08:00", "10:00", 1.0), _slot("08:30", "10:30", 1.0, available=False)]

    recommendations = build_recommendations(
        slots,
        friday,
        efficient_max_power=3.0,
        efficient_limit=3,
        best_slot_tolerance=0.5,
        min_available_slots=3,
        alternative_date_count=3,
    )

    assert recommendations.alternative_dates == (
        date(2026, 3, 9),
        date(2026, 3, 10),
        date(2026, 3, 11),
    )


def test_next_weekdays_from_saturday_starts_monday() -> None:
    assert next_weekdays(date(2026, 3, 7), 2) == [date(2026, 3, 9), date(2026, 3, 10)]

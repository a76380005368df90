"""Ranking, tiering and recommendation logic over scored time slots.

Every function here is pure: it receives already-scored ``TimeSlot`` values
and returns new immutable values without touching persistence.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Optional, Sequence

from labenergy.domain.models import EfficiencyGroup, Recommendations, TimeSlot
from labenergy.domain.time_ranges import to_minutes
from labenergy.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class EfficiencyBand:
    id: str
    label: str
    lower: float
    upper: float

    def includes(self, spike_percentage: float) -> bool:
        return self.lower <= spike_percentage < self.upper


EFFICIENCY_BANDS: tuple[EfficiencyBand, ...] = (
    EfficiencyBand("optimal", "Optimal", 0.0, 10.0),
    EfficiencyBand("good", "Good", 10.0, 30.0),
    EfficiencyBand("regular", "Regular", 30.0, 50.0),
    EfficiencyBand("high", "High", 50.0, 500.0),
    EfficiencyBand("very-high", "Very High", 500.0, math.inf),
)

_WEEKEND_DAYS = {5, 6}


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def power_spike_percentage(power: float, lowest_power: float) -> float:
    """Relative increase of ``power`` over the cheapest slot.

    A zero-power cheapest slot has no meaningful ratio, so the raw power value
    is reported instead.
    """
    if lowest_power > 0:
        return (power - lowest_power) / lowest_power * 100.0
    return power


def rank_slots(slots: Sequence[TimeSlot]) -> list[TimeSlot]:
    """Sort slots by power, then start time, and stamp each with its spike."""
    ordered = sorted(slots, key=lambda slot: (slot.power_consumption, to_minutes(slot.start_time)))
    if not ordered:
        return []
    lowest_power = ordered[0].power_consumption
    return [
        replace(
            slot,
            power_spike_percentage=power_spike_percentage(slot.power_consumption, lowest_power),
        )
        for slot in ordered
    ]


def band_for(spike_percentage: float) -> EfficiencyBand:
    for band in EFFICIENCY_BANDS:
        if band.includes(spike_percentage):
            return band
    return EFFICIENCY_BANDS[-1]


def group_slots_by_efficiency(ranked_slots: Sequence[TimeSlot]) -> list[EfficiencyGroup]:
    """Partition ranked slots into the fixed efficiency bands, skipping empty ones."""
    members: dict[str, list[TimeSlot]] = {band.id: [] for band in EFFICIENCY_BANDS}
    for slot in ranked_slots:
        members[band_for(slot.power_spike_percentage).id].append(slot)

    groups: list[EfficiencyGroup] = []
    for band in EFFICIENCY_BANDS:
        band_slots = members[band.id]
        if not band_slots:
            continue
        mean_spike = sum(slot.power_spike_percentage for slot in band_slots) / len(band_slots)
        mean_power = sum(slot.power_consumption for slot in band_slots) / len(band_slots)
        earliest = min(band_slots, key=lambda slot: to_minutes(slot.start_time))
        latest = max(band_slots, key=lambda slot: to_minutes(slot.end_time))
        groups.append(
            EfficiencyGroup(
                id=band.id,
                label=band.label,
                power_spike_percentage=int(round_half_up(mean_spike)),
                time_range=f"{earliest.start_time} - {latest.end_time}",
                slots=tuple(band_slots),
                average_power_consumption=mean_power,
            )
        )
    return groups


def select_best_slot(
    available_slots: Sequence[TimeSlot],
    power_tolerance: float,
) -> Optional[TimeSlot]:
    """Earliest slot among those within ``power_tolerance`` kW of the cheapest."""
    if not available_slots:
        return None
    lowest_power = min(slot.power_consumption for slot in available_slots)
    candidates = [
        slot
        for slot in available_slots
        if slot.power_consumption <= lowest_power + power_tolerance
    ]
    return min(
        candidates,
        key=lambda slot: (to_minutes(slot.start_time), slot.power_consumption),
    )


def energy_efficient_slots(
    available_slots: Sequence[TimeSlot],
    max_power: float,
    limit: int,
) -> list[TimeSlot]:
    efficient = [slot for slot in available_slots if slot.power_consumption <= max_power]
    efficient.sort(key=lambda slot: (slot.power_consumption, to_minutes(slot.start_time)))
    return efficient[:limit]


def next_weekdays(after: date, count: int) -> list[date]:
    """Return the next ``count`` Monday-Friday dates strictly after ``after``."""
    dates: list[date] = []
    current = after
    while len(dates) < count:
        current += timedelta(days=1)
        if current.weekday() not in _WEEKEND_DAYS:
            dates.append(current)
    return dates


def build_recommendations(
    slots: Sequence[TimeSlot],
    requested_date: date,
    *,
    efficient_max_power: float,
    efficient_limit: int,
    best_slot_tolerance: float,
    min_available_slots: int,
    alternative_date_count: int,
) -> Recommendations:
    available = [slot for slot in slots if slot.available]
    alternative_dates: Optional[tuple[date, ...]] = None
    if len(available) < min_available_slots:
        alternative_dates = tuple(next_weekdays(requested_date, alternative_date_count))
        logger.info(
            "Few available slots; suggesting alternative dates | date=%s | available=%s",
            requested_date.isoformat(),
            len(available),
        )
    return Recommendations(
        best_slot=select_best_slot(available, best_slot_tolerance),
        energy_efficient_slots=tuple(
            energy_efficient_slots(available, efficient_max_power, efficient_limit)
        ),
        alternative_dates=alternative_dates,
    )

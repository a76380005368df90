"""HTTP controller layer for slot availability and power scoring."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from labenergy.controllers.dependencies import get_availability_service
from labenergy.domain.time_ranges import InvalidTimeFormatError
from labenergy.services.availability_service import (
    AvailabilityService,
    AvailabilityValidationError,
    LaboratoryNotFoundError,
    MachineNotFoundError,
)
from labenergy.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["availability"])


class AvailabilityRequest(BaseModel):
    """Input DTO; ``machine_id`` and ``machine_ids`` are merged by the service."""

    date: date
    laboratory_id: int = Field(gt=0)
    machine_ids: list[int] | None = None
    machine_id: int | None = Field(default=None, gt=0)
    duration_hours: float | None = Field(default=None, gt=0.0, le=24.0)

    @field_validator("machine_ids")
    @classmethod
    def validate_machine_ids(cls, value: list[int] | None) -> list[int] | None:
        if value is None:
            return None
        if any(item <= 0 for item in value):
            raise ValueError("machine_ids must contain positive integers")
        return value


class OptimalSlotsRequest(BaseModel):
    laboratory_id: int = Field(gt=0)
    machine_ids: list[int] = Field(min_length=1)
    start_date: date
    days: int | None = Field(default=None, gt=0, le=31)
    duration_hours: float | None = Field(default=None, gt=0.0, le=24.0)


class TimeSlotResponse(BaseModel):
    start_time: str
    end_time: str
    available: bool
    power_consumption: float = Field(ge=0.0)
    power_spike_percentage: float = Field(ge=0.0)
    machine_ids: list[int]
    reason: str | None = None


class EfficiencyGroupResponse(BaseModel):
    id: str
    label: str
    power_spike_percentage: int = Field(ge=0)
    time_range: str
    slots: list[TimeSlotResponse]
    average_power_consumption: float = Field(ge=0.0)


class RecommendationsResponse(BaseModel):
    best_slot: TimeSlotResponse | None
    energy_efficient_slots: list[TimeSlotResponse]
    alternative_dates: list[date] | None


class AvailabilityResponse(BaseModel):
    time_slots: list[TimeSlotResponse]
    efficiency_groups: list[EfficiencyGroupResponse]
    recommendations: RecommendationsResponse
    total_day_consumption: float = Field(ge=0.0)
    peak_hours: list[str]


class DailyOptimalSlotsResponse(BaseModel):
    date: date
    slots: list[TimeSlotResponse]


class OptimalSlotsAnalysisResponse(BaseModel):
    total_days_checked: int = Field(ge=0)
    days_with_availability: int = Field(ge=0)
    average_slots_per_day: float = Field(ge=0.0)


class OptimalSlotsResponse(BaseModel):
    optimal_slots: list[DailyOptimalSlotsResponse]
    analysis: OptimalSlotsAnalysisResponse


@router.post(
    "/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
)
async def check_availability(
    payload: AvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """Score every candidate slot of the day for the requested machines."""
    try:
        result = service.check_availability(
            date=payload.date,
            laboratory_id=payload.laboratory_id,
            machine_ids=payload.machine_ids,
            machine_id=payload.machine_id,
            duration_hours=payload.duration_hours,
        )
        return AvailabilityResponse.model_validate(result.to_dict())
    except (AvailabilityValidationError, InvalidTimeFormatError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except (LaboratoryNotFoundError, MachineNotFoundError) as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected availability failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute availability",
        ) from exc


@router.post(
    "/optimal_slots",
    response_model=OptimalSlotsResponse,
    status_code=status.HTTP_200_OK,
)
async def optimal_slots(
    payload: OptimalSlotsRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> OptimalSlotsResponse:
    try:
        results = service.get_optimal_slots(
            laboratory_id=payload.laboratory_id,
            machine_ids=payload.machine_ids,
            start_date=payload.start_date,
            days=payload.days,
            duration_hours=payload.duration_hours,
        )
        slot_count = sum(len(item.slots) for item in results)
        return OptimalSlotsResponse.model_validate(
            {
                "optimal_slots": [item.to_dict() for item in results],
                "analysis": {
                    "total_days_checked": (
                        payload.days if payload.days is not None else service.optimal_slot_days
                    ),
                    "days_with_availability": len(results),
                    "average_slots_per_day": slot_count / len(results) if results else 0.0,
                },
            }
        )
    except (AvailabilityValidationError, InvalidTimeFormatError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except (LaboratoryNotFoundError, MachineNotFoundError) as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected optimal slot failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute optimal slots",
        ) from exc

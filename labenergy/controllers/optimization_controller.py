"""HTTP controller layer for energy profiles and power-budgeted scheduling."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from labenergy.controllers.availability_controller import TimeSlotResponse
from labenergy.controllers.dependencies import get_optimization_service
from labenergy.domain.time_ranges import InvalidTimeFormatError
from labenergy.services.availability_service import LaboratoryNotFoundError
from labenergy.services.power_optimization_service import (
    OptimizationValidationError,
    PowerOptimizationService,
)
from labenergy.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["optimization"])


class PowerOptimizationRequest(BaseModel):
    laboratory_id: int = Field(gt=0)
    date: date
    requested_duration_hours: float = Field(default=2.0, gt=0.0, le=24.0)
    max_power_budget: float | None = Field(default=None, gt=0.0)
    prioritize_efficiency: bool = True


class WeeklyOptimizationRequest(BaseModel):
    laboratory_id: int = Field(gt=0)
    start_date: date
    duration_hours: float = Field(default=2.0, gt=0.0, le=24.0)


class AlternativeScheduleResponse(BaseModel):
    id: str
    description: str
    schedule: list[TimeSlotResponse]
    total_power: float = Field(ge=0.0)


class OptimizationResponse(BaseModel):
    recommended_slots: list[TimeSlotResponse]
    power_savings: float = Field(ge=0.0)
    efficiency_score: float = Field(ge=0.0, le=100.0)
    optimization_strategies: list[str]
    alternative_schedules: list[AlternativeScheduleResponse]


class HourlyConsumptionResponse(BaseModel):
    hour: int = Field(ge=0, le=23)
    consumption: float = Field(ge=0.0)


class EnergyProfileResponse(BaseModel):
    laboratory_id: int = Field(gt=0)
    date: date
    hourly_consumption: list[HourlyConsumptionResponse]
    peak_hours: list[int]
    optimal_hours: list[int]
    total_day_consumption: float = Field(ge=0.0)
    capacity_utilization: float = Field(ge=0.0)


class DailyOptimizationResponse(BaseModel):
    date: date
    optimization: OptimizationResponse


class WeeklyInsightsResponse(BaseModel):
    total_power_savings: float = Field(ge=0.0)
    best_days: list[date]
    average_efficiency: float = Field(ge=0.0, le=100.0)


class WeeklyOptimizationResponse(BaseModel):
    daily_recommendations: list[DailyOptimizationResponse]
    weekly_insights: WeeklyInsightsResponse


def _raise_http_error(exc: Exception, detail: str) -> None:
    if isinstance(exc, (OptimizationValidationError, InvalidTimeFormatError)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    if isinstance(exc, LaboratoryNotFoundError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    logger.exception("Unexpected optimization failure | %s", detail)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    ) from exc


@router.post(
    "/power_optimization",
    response_model=OptimizationResponse,
    status_code=status.HTTP_200_OK,
)
async def power_optimization(
    payload: PowerOptimizationRequest,
    service: PowerOptimizationService = Depends(get_optimization_service),
) -> OptimizationResponse:
    """Recommend up to three slots under the requested power budget."""
    try:
        result = service.optimize_scheduling(
            laboratory_id=payload.laboratory_id,
            date=payload.date,
            requested_duration_hours=payload.requested_duration_hours,
            max_power_budget=payload.max_power_budget,
            prioritize_efficiency=payload.prioritize_efficiency,
        )
        return OptimizationResponse.model_validate(result.to_dict())
    except Exception as exc:
        _raise_http_error(exc, "Failed to optimize scheduling")


@router.get(
    "/energy_profile",
    response_model=EnergyProfileResponse,
    status_code=status.HTTP_200_OK,
)
async def energy_profile(
    laboratory_id: int = Query(gt=0),
    profile_date: date = Query(alias="date"),
    service: PowerOptimizationService = Depends(get_optimization_service),
) -> EnergyProfileResponse:
    try:
        profile = service.generate_energy_profile(laboratory_id=laboratory_id, date=profile_date)
        return EnergyProfileResponse.model_validate(profile.to_dict())
    except Exception as exc:
        _raise_http_error(exc, "Failed to generate energy profile")


@router.post(
    "/weekly_optimization",
    response_model=WeeklyOptimizationResponse,
    status_code=status.HTTP_200_OK,
)
async def weekly_optimization(
    payload: WeeklyOptimizationRequest,
    service: PowerOptimizationService = Depends(get_optimization_service),
) -> WeeklyOptimizationResponse:
    try:
        result = service.get_weekly_optimization(
            laboratory_id=payload.laboratory_id,
            start_date=payload.start_date,
            duration_hours=payload.duration_hours,
        )
        return WeeklyOptimizationResponse.model_validate(result.to_dict())
    except Exception as exc:
        _raise_http_error(exc, "Failed to compute weekly optimization")

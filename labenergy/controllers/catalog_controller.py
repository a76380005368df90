"""Read-only HTTP endpoints for laboratories, machines, bookings and tariff windows."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from labenergy.controllers.dependencies import get_repository
from labenergy.repository.data_repository import DataRepository


router = APIRouter(tags=["catalog"])

DAYS_PER_WEEK = 7


class LaboratoryResponse(BaseModel):
    laboratory_id: int = Field(gt=0)
    name: str
    location: str


class MachineResponse(BaseModel):
    machine_id: int = Field(gt=0)
    laboratory_id: int = Field(gt=0)
    name: str
    power_consumption: float = Field(ge=0.0)


class AppointmentResponse(BaseModel):
    appointment_id: int = Field(gt=0)
    laboratory_id: int = Field(gt=0)
    appointment_date: date
    start_time: str
    end_time: str
    power_consumption: float = Field(ge=0.0)
    status: str
    machine_ids: list[int]
    user_name: str
    user_email: str
    purpose: str
    created_at: str


class PreferredHourResponse(BaseModel):
    preferred_hour_id: int = Field(gt=0)
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    power_consumption: float = Field(ge=0.0)


def _ensure_laboratory(repository: DataRepository, laboratory_id: int | None) -> None:
    if laboratory_id is not None and repository.get_laboratory(laboratory_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"laboratory_id={laboratory_id} does not exist",
        )


@router.get(
    "/laboratories",
    response_model=list[LaboratoryResponse],
    status_code=status.HTTP_200_OK,
)
async def list_laboratories(
    repository: DataRepository = Depends(get_repository),
) -> list[LaboratoryResponse]:
    return [LaboratoryResponse(**item.to_dict()) for item in repository.list_laboratories()]


@router.get(
    "/machines",
    response_model=list[MachineResponse],
    status_code=status.HTTP_200_OK,
)
async def list_machines(
    laboratory_id: int | None = Query(default=None, gt=0),
    repository: DataRepository = Depends(get_repository),
) -> list[MachineResponse]:
    """Machines of one laboratory, or of every laboratory when none is given."""
    _ensure_laboratory(repository, laboratory_id)
    return [MachineResponse(**item.to_dict()) for item in repository.list_machines(laboratory_id)]


@router.get(
    "/appointments",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
)
async def list_appointments(
    appointment_date: date = Query(alias="date"),
    laboratory_id: int | None = Query(default=None, gt=0),
    repository: DataRepository = Depends(get_repository),
) -> list[AppointmentResponse]:
    """Active bookings on one date, optionally for a single laboratory."""
    _ensure_laboratory(repository, laboratory_id)
    day = appointment_date.isoformat()
    appointments = repository.list_appointments(
        start_date=day,
        end_date=day,
        laboratory_id=laboratory_id,
    )
    return [AppointmentResponse(**item.to_dict()) for item in appointments]


@router.get(
    "/preferred_hours",
    response_model=list[PreferredHourResponse],
    status_code=status.HTTP_200_OK,
)
async def list_preferred_hours(
    day_of_week: int | None = Query(default=None, ge=0, le=6),
    repository: DataRepository = Depends(get_repository),
) -> list[PreferredHourResponse]:
    """Tariff windows for one weekday (Sunday == 0), or the whole week."""
    days = range(DAYS_PER_WEEK) if day_of_week is None else (day_of_week,)
    return [
        PreferredHourResponse(**item.to_dict())
        for day in days
        for item in repository.list_preferred_hours(day)
    ]

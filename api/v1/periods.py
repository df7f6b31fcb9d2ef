"""
Observation Period Endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, status

from api.deps import get_period_service
from core.logging import get_logger
from schemas.period import (
    CalendarDay,
    DayComplete,
    PeriodCancel,
    PeriodCreate,
    PeriodDetail,
    PeriodRead,
)
from services.period_service import PeriodService

logger = get_logger(__name__)

router = APIRouter()


@router.post("", response_model=PeriodRead, status_code=status.HTTP_201_CREATED, summary="Start a period")
async def create_period(request: PeriodCreate, service: PeriodService = Depends(get_period_service)):
    """Create a period with its day logs; a patient can have one active period only."""
    period = await service.create(request)
    logger.info("Period created via API", period_id=period.id, patient_id=request.patient_id)
    return period


@router.get("/patient/{patient_id}", response_model=List[PeriodRead], summary="Periods of a patient")
async def list_patient_periods(patient_id: int, service: PeriodService = Depends(get_period_service)):
    return await service.list_by_patient(patient_id)


@router.get("/{period_id}", response_model=PeriodDetail, summary="Get period with progress")
async def get_period(period_id: int, service: PeriodService = Depends(get_period_service)):
    detail = await service.get_with_progress(period_id)
    return PeriodDetail(
        **PeriodRead.model_validate(detail["period"]).model_dump(),
        progress=detail["progress"],
    )


@router.get("/{period_id}/calendar", response_model=List[CalendarDay], summary="Day-by-day calendar")
async def get_period_calendar(period_id: int, service: PeriodService = Depends(get_period_service)):
    return await service.calendar(period_id)


@router.post("/{period_id}/days/{day_number}/complete", response_model=PeriodRead, summary="Complete a day")
async def complete_day(
    period_id: int,
    day_number: int,
    request: DayComplete,
    service: PeriodService = Depends(get_period_service),
):
    return await service.complete_day(period_id, day_number, user_id=request.user_id, notes=request.notes)


@router.post("/{period_id}/complete", response_model=PeriodRead, summary="Complete a period")
async def complete_period(period_id: int, service: PeriodService = Depends(get_period_service)):
    return await service.complete(period_id)


@router.post("/{period_id}/cancel", response_model=PeriodRead, summary="Cancel a period")
async def cancel_period(
    period_id: int,
    request: PeriodCancel,
    service: PeriodService = Depends(get_period_service),
):
    return await service.cancel(period_id, reason=request.reason)

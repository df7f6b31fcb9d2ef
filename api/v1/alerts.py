"""
Alert Endpoints

Alert list for trackers and doctors, status changes and escalation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_alert_service
from core.logging import get_logger
from models.alert import AlertStatus, AlertType
from models.answer import RiskLevel
from schemas.alert import AlertEscalate, AlertRead, AlertStats, AlertStatusUpdate
from schemas.responses import PaginatedResponse
from services.alert_service import AlertService

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=PaginatedResponse, summary="List alerts")
async def list_alerts(
    status: Optional[AlertStatus] = None,
    type: Optional[AlertType] = None,
    risk_level: Optional[RiskLevel] = None,
    patient_id: Optional[int] = None,
    tracker_id: Optional[int] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    service: AlertService = Depends(get_alert_service),
):
    """Alerts ordered by risk (CRITICAL first), then newest first."""
    filters = {
        "status": status,
        "type": type,
        "risk_level": risk_level,
        "patient_id": patient_id,
        "tracker_id": tracker_id,
    }
    items, total = await service.list(filters, page=page, limit=limit)
    return PaginatedResponse.create(
        items=[AlertRead.model_validate(alert) for alert in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/stats/{tracker_id}", response_model=AlertStats, summary="Alert statistics for a tracker")
async def get_alert_stats(tracker_id: int, service: AlertService = Depends(get_alert_service)):
    return await service.get_stats_by_tracker(tracker_id)


@router.get("/patient/{patient_id}/active", response_model=list[AlertRead], summary="Open alerts of a patient")
async def get_active_alerts(patient_id: int, service: AlertService = Depends(get_alert_service)):
    return await service.get_active_for_patient(patient_id)


@router.get("/{alert_id}", response_model=AlertRead, summary="Get alert")
async def get_alert(alert_id: int, service: AlertService = Depends(get_alert_service)):
    return await service.get(alert_id)


@router.patch("/{alert_id}/status", response_model=AlertRead, summary="Change alert status")
async def update_alert_status(
    alert_id: int,
    request: AlertStatusUpdate,
    service: AlertService = Depends(get_alert_service),
):
    logger.info("Alert status change requested", alert_id=alert_id, status=request.status.value)
    return await service.update_status(
        alert_id,
        request.status,
        resolved_by=request.resolved_by,
        metadata=request.metadata,
    )


@router.post("/{alert_id}/escalate", response_model=AlertRead, summary="Escalate alert to a doctor")
async def escalate_alert(
    alert_id: int,
    request: AlertEscalate,
    service: AlertService = Depends(get_alert_service),
):
    logger.info("Alert escalation requested", alert_id=alert_id, escalated_to=request.escalated_to)
    return await service.escalate(alert_id, escalated_to=request.escalated_to)

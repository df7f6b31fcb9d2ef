from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from models.alert import AlertStatus, AlertType
from models.answer import RiskLevel


class AlertRead(BaseModel):
    id: int
    patient_id: int
    answer_id: Optional[int] = None
    type: AlertType
    risk_level: RiskLevel
    title: str
    description: Optional[str] = None
    status: AlertStatus
    triggered_by: Optional[str] = None
    escalated_to_id: Optional[int] = None
    resolved_by: Optional[int] = None
    resolved_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="meta")
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
    }


class AlertStatusUpdate(BaseModel):
    status: AlertStatus
    resolved_by: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


class AlertEscalate(BaseModel):
    escalated_to: Optional[int] = None


class AlertStats(BaseModel):
    by_status: Dict[str, int]
    open_by_risk: Dict[str, int]
    avg_reaction_minutes: Optional[float] = None

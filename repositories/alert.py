from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from models.alert import Alert, AlertStatus, AlertType
from models.answer import RiskLevel
from models.patient import Patient
from repositories.base import BaseRepository

_RISK_SORT = case(
    (Alert.risk_level == RiskLevel.CRITICAL, 0),
    (Alert.risk_level == RiskLevel.HIGH, 1),
    (Alert.risk_level == RiskLevel.MEDIUM, 2),
    else_=3,
)


class AlertRepository(BaseRepository[Alert]):
    def __init__(self, db: AsyncSession):
        super().__init__(Alert, db)

    def _filtered(self, query, filters: Dict[str, Any]):
        tracker_id = filters.get("tracker_id")
        if tracker_id is not None:
            query = query.join(Patient, Patient.id == Alert.patient_id).where(Patient.tracker_id == tracker_id)
        for field in ("status", "type", "risk_level", "patient_id"):
            value = filters.get(field)
            if value is not None:
                query = query.where(getattr(Alert, field) == value)
        return query

    async def list_filtered(self, filters: Dict[str, Any], skip: int = 0, limit: int = 20) -> Tuple[List[Alert], int]:
        total = await self.db.execute(self._filtered(select(func.count(Alert.id)), filters))
        query = (
            self._filtered(select(Alert), filters)
            .order_by(_RISK_SORT, Alert.created_at.desc(), Alert.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), int(total.scalar_one())

    async def active_for_patient(self, patient_id: int) -> List[Alert]:
        result = await self.db.execute(
            select(Alert)
            .where(Alert.patient_id == patient_id, Alert.status != AlertStatus.RESOLVED)
            .order_by(_RISK_SORT, Alert.created_at.desc())
        )
        return list(result.scalars().all())

    async def missed_response_for_question(self, patient_id: int, question_id: int) -> Optional[Alert]:
        result = await self.db.execute(
            select(Alert).where(Alert.patient_id == patient_id, Alert.type == AlertType.MISSED_RESPONSE)
        )
        for alert in result.scalars().all():
            if (alert.meta or {}).get("question_id") == question_id:
                return alert
        return None

    async def new_of_type_before(self, alert_type: AlertType, cutoff: datetime) -> List[Alert]:
        result = await self.db.execute(
            select(Alert)
            .where(
                Alert.type == alert_type,
                Alert.status == AlertStatus.NEW,
                Alert.created_at < cutoff,
            )
            .order_by(Alert.created_at)
        )
        return list(result.scalars().all())

    async def for_tracker(self, tracker_id: int) -> List[Alert]:
        result = await self.db.execute(
            select(Alert).join(Patient, Patient.id == Alert.patient_id).where(Patient.tracker_id == tracker_id)
        )
        return list(result.scalars().all())

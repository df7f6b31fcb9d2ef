from datetime import date, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.patient import Patient, PatientStatus
from models.period import DayLog, DayStatus, Period, PeriodStatus
from repositories.base import BaseRepository


class PeriodRepository(BaseRepository[Period]):
    def __init__(self, db: AsyncSession):
        super().__init__(Period, db)

    async def find_active_by_patient(self, patient_id: int) -> Optional[Period]:
        result = await self.db.execute(
            select(Period).where(Period.patient_id == patient_id, Period.status == PeriodStatus.ACTIVE)
        )
        return result.scalar_one_or_none()

    async def list_by_patient(self, patient_id: int) -> List[Period]:
        result = await self.db.execute(
            select(Period).where(Period.patient_id == patient_id).order_by(Period.start_date.desc(), Period.id.desc())
        )
        return list(result.scalars().all())

    async def list_active_with_patients(self) -> List[Tuple[Period, Patient]]:
        """ACTIVE periods whose patient is ACTIVE as well."""
        result = await self.db.execute(
            select(Period, Patient)
            .join(Patient, Patient.id == Period.patient_id)
            .where(Period.status == PeriodStatus.ACTIVE, Patient.status == PatientStatus.ACTIVE)
            .order_by(Period.id)
        )
        return [(period, patient) for period, patient in result.all()]


class DayLogRepository(BaseRepository[DayLog]):
    def __init__(self, db: AsyncSession):
        super().__init__(DayLog, db)

    async def get_day(self, period_id: int, day_number: int) -> Optional[DayLog]:
        result = await self.db.execute(
            select(DayLog).where(DayLog.period_id == period_id, DayLog.day_number == day_number)
        )
        return result.scalar_one_or_none()

    async def list_for_period(self, period_id: int) -> List[DayLog]:
        result = await self.db.execute(
            select(DayLog).where(DayLog.period_id == period_id).order_by(DayLog.day_number)
        )
        return list(result.scalars().all())

    async def mark_missed_before(self, period_id: int, day_number: int) -> int:
        """Flag every still-PENDING day before ``day_number`` as MISSED."""
        result = await self.db.execute(
            update(DayLog)
            .where(
                DayLog.period_id == period_id,
                DayLog.day_number < day_number,
                DayLog.status == DayStatus.PENDING,
            )
            .values(status=DayStatus.MISSED)
        )
        return result.rowcount or 0

    def build_days(self, period: Period, start_date: date) -> List[DayLog]:
        return [
            DayLog(
                period_id=period.id,
                patient_id=period.patient_id,
                day_number=day,
                date=start_date + timedelta(days=day - 1),
                status=DayStatus.PENDING,
            )
            for day in range(1, period.duration_days + 1)
        ]

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.patient import Patient, canonical_phone
from repositories.base import BaseRepository


class PatientRepository(BaseRepository[Patient]):
    def __init__(self, db: AsyncSession):
        super().__init__(Patient, db)

    async def find_by_phone(self, raw_phone: str) -> Optional[Patient]:
        """Exact match on the canonical phone."""
        phone = canonical_phone(raw_phone)
        if phone is None:
            return None
        result = await self.db.execute(select(Patient).where(Patient.phone == phone))
        return result.scalar_one_or_none()

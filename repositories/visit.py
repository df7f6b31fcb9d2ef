from datetime import datetime
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.visit import Visit, VisitStatus
from repositories.base import BaseRepository


class VisitRepository(BaseRepository[Visit]):
    def __init__(self, db: AsyncSession):
        super().__init__(Visit, db)

    async def scheduled_between(self, start: datetime, end: datetime) -> List[Visit]:
        result = await self.db.execute(
            select(Visit)
            .where(
                Visit.status == VisitStatus.scheduled.value,
                Visit.scheduled_date >= start,
                Visit.scheduled_date < end,
            )
            .order_by(Visit.scheduled_date)
        )
        return list(result.scalars().all())

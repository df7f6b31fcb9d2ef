from typing import Iterable, List, Optional, Set

from sqlalchemy import select, exists
from sqlalchemy.ext.asyncio import AsyncSession

from models.answer import Answer
from models.question import QuestionTemplate, TimeSlot
from repositories.base import BaseRepository


def sort_by_slot(questions: Iterable[QuestionTemplate]) -> List[QuestionTemplate]:
    """MORNING < AFTERNOON < EVENING, then ``order``; never alphabetical."""
    return sorted(questions, key=lambda q: (q.slot_rank, q.order, q.id))


class QuestionRepository(BaseRepository[QuestionTemplate]):
    def __init__(self, db: AsyncSession):
        super().__init__(QuestionTemplate, db)

    async def find_by_period(self, period_id: int) -> List[QuestionTemplate]:
        result = await self.db.execute(
            select(QuestionTemplate).where(QuestionTemplate.period_id == period_id)
        )
        questions = list(result.scalars().all())
        return sorted(questions, key=lambda q: (q.day_number, q.slot_rank, q.order, q.id))

    async def find_for_day(self, period_id: int, day_number: int) -> List[QuestionTemplate]:
        result = await self.db.execute(
            select(QuestionTemplate).where(
                QuestionTemplate.period_id == period_id,
                QuestionTemplate.day_number == day_number,
            )
        )
        return sort_by_slot(result.scalars().all())

    async def find_for_slot(self, period_id: int, day_number: int, time_slot: TimeSlot) -> List[QuestionTemplate]:
        result = await self.db.execute(
            select(QuestionTemplate)
            .where(
                QuestionTemplate.period_id == period_id,
                QuestionTemplate.day_number == day_number,
                QuestionTemplate.time_slot == time_slot,
            )
            .order_by(QuestionTemplate.order, QuestionTemplate.id)
        )
        return list(result.scalars().all())

    async def get_by_ids(self, ids: List[int]) -> List[QuestionTemplate]:
        if not ids:
            return []
        result = await self.db.execute(select(QuestionTemplate).where(QuestionTemplate.id.in_(ids)))
        return sort_by_slot(result.scalars().all())

    async def find_slot_position(
        self, period_id: int, day_number: int, time_slot: TimeSlot, order: int
    ) -> Optional[QuestionTemplate]:
        result = await self.db.execute(
            select(QuestionTemplate).where(
                QuestionTemplate.period_id == period_id,
                QuestionTemplate.day_number == day_number,
                QuestionTemplate.time_slot == time_slot,
                QuestionTemplate.order == order,
            )
        )
        return result.scalar_one_or_none()

    async def existing_keys(self, period_id: int) -> Set[tuple]:
        """(day_number, time_slot, order) of every template already in the period."""
        result = await self.db.execute(
            select(QuestionTemplate.day_number, QuestionTemplate.time_slot, QuestionTemplate.order).where(
                QuestionTemplate.period_id == period_id
            )
        )
        return {(day, TimeSlot(slot), order) for day, slot, order in result.all()}

    async def is_answered(self, question_id: int) -> bool:
        result = await self.db.execute(
            select(exists().where(Answer.question_template_id == question_id))
        )
        return bool(result.scalar())

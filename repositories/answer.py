from typing import List, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.answer import Answer
from repositories.base import BaseRepository


class AnswerRepository(BaseRepository[Answer]):
    def __init__(self, db: AsyncSession):
        super().__init__(Answer, db)

    async def get_with_question(self, answer_id: int) -> Optional[Answer]:
        result = await self.db.execute(
            select(Answer)
            .options(selectinload(Answer.question))
            .where(Answer.id == answer_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def answered_question_ids(self, period_id: int, question_ids: Optional[List[int]] = None) -> Set[int]:
        query = select(Answer.question_template_id).where(Answer.period_id == period_id)
        if question_ids is not None:
            if not question_ids:
                return set()
            query = query.where(Answer.question_template_id.in_(question_ids))
        result = await self.db.execute(query)
        return set(result.scalars().all())

    async def find_by_message_id(self, message_id: str) -> Optional[Answer]:
        result = await self.db.execute(select(Answer).where(Answer.message_id == message_id))
        return result.scalar_one_or_none()

    async def recent_for_patient(self, patient_id: int, limit: int = 5, exclude_id: Optional[int] = None) -> List[Answer]:
        query = (
            select(Answer)
            .options(selectinload(Answer.question))
            .where(Answer.patient_id == patient_id)
            .order_by(Answer.created_at.desc(), Answer.id.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        if exclude_id is not None:
            query = query.where(Answer.id != exclude_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_filtered(
        self,
        patient_id: Optional[int] = None,
        period_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Answer]:
        query = select(Answer)
        if patient_id is not None:
            query = query.where(Answer.patient_id == patient_id)
        if period_id is not None:
            query = query.where(Answer.period_id == period_id)
        query = query.order_by(Answer.created_at.desc(), Answer.id.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import AppError
from core.logging import get_logger
from models.period import Period
from models.question import QuestionTemplate, TimeSlot
from repositories.period import PeriodRepository
from repositories.question import QuestionRepository
from schemas.question import QuestionBase, QuestionCreate, QuestionUpdate

logger = get_logger(__name__)


class QuestionService:
    """Question catalog of a period."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.questions = QuestionRepository(db)
        self.periods = PeriodRepository(db)

    async def _period(self, period_id: int) -> Period:
        period = await self.periods.get(period_id)
        if period is None:
            raise AppError.not_found("Period not found", period_id=period_id)
        return period

    @staticmethod
    def _check_day(period: Period, day_number: int) -> None:
        if day_number > period.duration_days:
            raise AppError.bad_request(
                f"Day {day_number} is outside the period ({period.duration_days} days)",
                period_id=period.id,
                day_number=day_number,
            )

    async def create(self, data: QuestionCreate) -> QuestionTemplate:
        period = await self._period(data.period_id)
        self._check_day(period, data.day_number)

        existing = await self.questions.find_slot_position(data.period_id, data.day_number, data.time_slot, data.order)
        if existing is not None:
            raise AppError.conflict(
                "A question with this order already exists in the slot",
                period_id=data.period_id,
                day_number=data.day_number,
                time_slot=data.time_slot.value,
                order=data.order,
            )

        try:
            question = await self.questions.create(data)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise AppError.conflict("A question with this order already exists in the slot") from e
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Question created", question_id=question.id, period_id=data.period_id)
        return question

    async def bulk_create(self, period_id: int, questions: List[QuestionBase]) -> int:
        """Insert every question whose (day, slot, order) is free; returns the number inserted."""
        if not questions:
            return 0
        period = await self._period(period_id)
        taken = await self.questions.existing_keys(period_id)

        created = 0
        try:
            for item in questions:
                key = (item.day_number, TimeSlot(item.time_slot), item.order)
                if key in taken or item.day_number > period.duration_days:
                    continue
                taken.add(key)
                self.db.add(QuestionTemplate(period_id=period_id, **item.model_dump()))
                created += 1
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error("Failed to bulk create questions", period_id=period_id, error=str(e))
            raise AppError.internal("Failed to bulk create questions") from e

        logger.info("Questions bulk created", period_id=period_id, created=created, skipped=len(questions) - created)
        return created

    async def find_by_period(self, period_id: int) -> List[QuestionTemplate]:
        return await self.questions.find_by_period(period_id)

    async def find_for_day(self, period_id: int, day_number: int) -> List[QuestionTemplate]:
        return await self.questions.find_for_day(period_id, day_number)

    async def find_for_slot(self, period_id: int, day_number: int, time_slot: TimeSlot) -> List[QuestionTemplate]:
        return await self.questions.find_for_slot(period_id, day_number, time_slot)

    async def _editable(self, question_id: int) -> QuestionTemplate:
        question = await self.questions.get(question_id)
        if question is None:
            raise AppError.not_found("Question not found", question_id=question_id)
        if await self.questions.is_answered(question_id):
            raise AppError.conflict(
                "Question already has answers and cannot be changed",
                code="QUESTION_ANSWERED",
                question_id=question_id,
            )
        return question

    async def update(self, question_id: int, data: QuestionUpdate) -> QuestionTemplate:
        question = await self._editable(question_id)
        try:
            await self.questions.update(question, data)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise AppError.conflict("A question with this order already exists in the slot") from e
        except Exception:
            await self.db.rollback()
            raise
        logger.info("Question updated", question_id=question_id)
        return question

    async def delete(self, question_id: int) -> None:
        await self._editable(question_id)
        try:
            await self.questions.delete(question_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info("Question deleted", question_id=question_id)

    async def copy_from_period(self, source_period_id: int, target_period_id: int) -> int:
        await self._period(source_period_id)
        source = await self.questions.find_by_period(source_period_id)
        copies = [
            QuestionBase(
                day_number=q.day_number,
                time_slot=q.time_slot,
                order=q.order,
                question_text=q.question_text,
                response_type=q.response_type,
                options=q.options,
                is_required=q.is_required,
                ai_prompt=q.ai_prompt,
            )
            for q in source
        ]
        created = await self.bulk_create(target_period_id, copies)
        logger.info("Questions copied", source_period_id=source_period_id, target_period_id=target_period_id, created=created)
        return created

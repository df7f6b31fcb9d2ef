"""
Dependency injection utilities for API endpoints.
"""

from typing import AsyncGenerator
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from services.alert_service import AlertService
from services.answer_service import AnswerService
from services.integration_service import IntegrationService
from services.period_service import PeriodService
from services.question_service import QuestionService
from services.task_service import TaskService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async for session in get_db():
        yield session


def get_alert_service(db: AsyncSession = Depends(get_db_session)) -> AlertService:
    return AlertService(db)


def get_task_service(db: AsyncSession = Depends(get_db_session)) -> TaskService:
    return TaskService(db)


def get_period_service(db: AsyncSession = Depends(get_db_session)) -> PeriodService:
    return PeriodService(db)


def get_question_service(db: AsyncSession = Depends(get_db_session)) -> QuestionService:
    return QuestionService(db)


def get_answer_service(db: AsyncSession = Depends(get_db_session)) -> AnswerService:
    return AnswerService(db)


def get_integration_service() -> IntegrationService:
    return IntegrationService()

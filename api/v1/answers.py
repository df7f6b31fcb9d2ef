from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_answer_service
from core.exceptions import AppError
from schemas.answer import AnswerRead
from services.answer_service import AnswerService

router = APIRouter()


@router.get("", response_model=List[AnswerRead], summary="List answers")
async def list_answers(
    patient_id: Optional[int] = None,
    period_id: Optional[int] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    service: AnswerService = Depends(get_answer_service),
):
    return await service.list(patient_id=patient_id, period_id=period_id, page=page, limit=limit)


@router.get("/{answer_id}", response_model=AnswerRead, summary="Get answer")
async def get_answer(answer_id: int, service: AnswerService = Depends(get_answer_service)):
    answer = await service.get(answer_id)
    if answer is None:
        raise AppError.not_found("Answer not found", answer_id=answer_id)
    return answer

from typing import List

from fastapi import APIRouter, Depends, status

from api.deps import get_question_service
from schemas.question import (
    QuestionBulkCreate,
    QuestionCopy,
    QuestionCreate,
    QuestionRead,
    QuestionUpdate,
)
from schemas.responses import StandardSuccessResponse
from services.question_service import QuestionService

router = APIRouter()


@router.post("", response_model=QuestionRead, status_code=status.HTTP_201_CREATED, summary="Create question")
async def create_question(request: QuestionCreate, service: QuestionService = Depends(get_question_service)):
    return await service.create(request)


@router.post("/bulk", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED, summary="Create questions in bulk")
async def bulk_create_questions(request: QuestionBulkCreate, service: QuestionService = Depends(get_question_service)):
    """Questions whose (day, slot, order) is already taken are skipped."""
    created = await service.bulk_create(request.period_id, request.questions)
    return StandardSuccessResponse(
        message=f"{created} questions created",
        data={"created": created, "skipped": len(request.questions) - created},
    )


@router.post("/copy", response_model=StandardSuccessResponse, summary="Copy questions between periods")
async def copy_questions(request: QuestionCopy, service: QuestionService = Depends(get_question_service)):
    created = await service.copy_from_period(request.source_period_id, request.target_period_id)
    return StandardSuccessResponse(message=f"{created} questions copied", data={"created": created})


@router.get("/period/{period_id}", response_model=List[QuestionRead], summary="Questions of a period")
async def list_period_questions(period_id: int, service: QuestionService = Depends(get_question_service)):
    return await service.find_by_period(period_id)


@router.get("/period/{period_id}/day/{day_number}", response_model=List[QuestionRead], summary="Questions of a day")
async def list_day_questions(period_id: int, day_number: int, service: QuestionService = Depends(get_question_service)):
    return await service.find_for_day(period_id, day_number)


@router.patch("/{question_id}", response_model=QuestionRead, summary="Update question")
async def update_question(
    question_id: int,
    request: QuestionUpdate,
    service: QuestionService = Depends(get_question_service),
):
    return await service.update(question_id, request)


@router.delete("/{question_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete question")
async def delete_question(question_id: int, service: QuestionService = Depends(get_question_service)):
    await service.delete(question_id)

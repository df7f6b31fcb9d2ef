from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from models.question import ResponseType, TimeSlot


class QuestionBase(BaseModel):
    day_number: int = Field(ge=1)
    time_slot: TimeSlot
    order: int = Field(default=0, ge=0)
    question_text: str = Field(min_length=1)
    response_type: ResponseType = ResponseType.TEXT
    options: Optional[List[str]] = None
    is_required: bool = True
    ai_prompt: Optional[str] = None


class QuestionIn(QuestionBase):
    @model_validator(mode="after")
    def options_for_option_questions(self):
        if self.response_type == ResponseType.OPTION and not self.options:
            raise ValueError("OPTION questions need at least one option")
        return self


class QuestionCreate(QuestionIn):
    period_id: int


class QuestionBulkCreate(BaseModel):
    period_id: int
    questions: List[QuestionIn]


class QuestionUpdate(BaseModel):
    question_text: Optional[str] = Field(default=None, min_length=1)
    response_type: Optional[ResponseType] = None
    options: Optional[List[str]] = None
    is_required: Optional[bool] = None
    ai_prompt: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=0)


class QuestionCopy(BaseModel):
    source_period_id: int
    target_period_id: int


class QuestionRead(QuestionBase):
    id: int
    period_id: int
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }

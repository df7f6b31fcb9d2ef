from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models.answer import RiskLevel
from models.question import TimeSlot


class AnswerRead(BaseModel):
    id: int
    patient_id: int
    period_id: int
    question_template_id: int
    day_number: int
    time_slot: TimeSlot
    text_content: Optional[str] = None
    photo_url: Optional[str] = None
    voice_url: Optional[str] = None
    voice_transcription: Optional[str] = None
    is_processed: bool
    risk_level: RiskLevel
    ai_analysis: Optional[Dict[str, Any]] = None
    message_id: Optional[str] = None
    received_at: datetime
    created_at: datetime

    model_config = {
        "from_attributes": True
    }


class AnalysisResult(BaseModel):
    """What the AI analyzer returns for one answer."""

    sentiment: str = "neutral"
    risk_level: RiskLevel = RiskLevel.LOW
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    summary: str = ""
    should_alert: bool = False
    alert_reason: Optional[str] = None


class PreviousAnswer(BaseModel):
    question: str
    content: Optional[str] = None
    risk_level: RiskLevel


class AnalysisContext(BaseModel):
    """Patient profile and recent history passed to the analyzer."""

    patient_id: int
    patient_name: str
    period_name: Optional[str] = None
    day_number: int
    question: str
    ai_prompt: Optional[str] = None
    previous_answers: List[PreviousAnswer] = Field(default_factory=list)

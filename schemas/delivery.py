from datetime import datetime
from typing import List

from pydantic import BaseModel

from core.redis import DELIVERY_DEDUP_KEY_PREFIX
from models.question import TimeSlot


class DeliveryJob(BaseModel):
    """One WhatsApp message carrying every question of a slot."""

    patient_id: int
    period_id: int
    day_number: int
    time_slot: TimeSlot
    question_ids: List[int]
    scheduled_at: datetime

    @property
    def key(self) -> str:
        return f"{DELIVERY_DEDUP_KEY_PREFIX}:{self.patient_id}:{self.period_id}:{self.day_number}:{self.time_slot.value}"


class AnalysisJob(BaseModel):
    answer_id: int


class SweepResult(BaseModel):
    scheduled_count: int = 0
    completed_periods: int = 0
    failed_periods: int = 0
    missed_days: int = 0

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from models.period import DayStatus, PeriodStatus, MAX_PERIOD_DAYS
from models.question import TimeSlot


class SlotSchedule(BaseModel):
    slot: TimeSlot
    hour: int = Field(ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)


DEFAULT_SCHEDULE = [
    SlotSchedule(slot=TimeSlot.MORNING, hour=9, minute=0),
    SlotSchedule(slot=TimeSlot.AFTERNOON, hour=14, minute=0),
    SlotSchedule(slot=TimeSlot.EVENING, hour=20, minute=0),
]


class PeriodSettings(BaseModel):
    """Per-period options stored in ``Period.settings``."""

    schedule: Optional[List[SlotSchedule]] = None
    auto_complete_day: bool = True
    reminder_delay_minutes: Optional[int] = Field(default=None, ge=0)

    @classmethod
    def from_db(cls, raw: Optional[dict]) -> "PeriodSettings":
        return cls.model_validate(raw or {})

    def slot_time(self, slot: TimeSlot) -> Optional[SlotSchedule]:
        """Configured time for ``slot``; the override replaces the default schedule entirely."""
        schedule = self.schedule if self.schedule is not None else DEFAULT_SCHEDULE
        for entry in schedule:
            if entry.slot == slot:
                return entry
        return None


class PeriodCreate(BaseModel):
    patient_id: int
    name: str = Field(min_length=1, max_length=200)
    start_date: date
    duration_days: int = Field(ge=1, le=MAX_PERIOD_DAYS)
    settings: Optional[PeriodSettings] = None


class PeriodCancel(BaseModel):
    reason: Optional[str] = None


class DayComplete(BaseModel):
    user_id: int
    notes: Optional[str] = None


class DayLogRead(BaseModel):
    id: int
    period_id: int
    day_number: int
    date: date
    morning_completed: bool
    afternoon_completed: bool
    evening_completed: bool
    status: DayStatus
    completed_by: Optional[int] = None
    notes: Optional[str] = None

    model_config = {
        "from_attributes": True
    }


class PeriodProgress(BaseModel):
    total_days: int
    completed_days: int
    missed_days: int
    current_day: Optional[int] = None
    percent: float


class PeriodRead(BaseModel):
    id: int
    patient_id: int
    name: str
    start_date: date
    duration_days: int
    end_date: Optional[datetime] = None
    status: PeriodStatus
    settings: Optional[dict] = None
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class PeriodDetail(PeriodRead):
    progress: PeriodProgress


class CalendarDay(BaseModel):
    day_number: int
    date: date
    status: DayStatus
    morning_completed: bool
    afternoon_completed: bool
    evening_completed: bool
    answered: int = Field(ge=0)
    required: int = Field(ge=0)

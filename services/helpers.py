import logging
from datetime import date, datetime, time, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.config import settings

logger = logging.getLogger(__name__)


def patient_zone(tz_name: Optional[str]) -> ZoneInfo:
    """Patient's IANA zone, or the configured default when unset or unknown."""
    if tz_name:
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone {tz_name!r}, using {settings.DEFAULT_TIMEZONE}")
    return ZoneInfo(settings.DEFAULT_TIMEZONE)


def local_date(moment: datetime, tz_name: Optional[str]) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(patient_zone(tz_name)).date()


def compute_day_number(start_date: date, moment: datetime, tz_name: Optional[str]) -> int:
    """1-based day of a period at ``moment``, counted on calendar dates in the patient's zone."""
    return (local_date(moment, tz_name) - start_date).days + 1


def local_slot_time(day: date, hour: int, minute: int, tz_name: Optional[str]) -> datetime:
    """``day`` at ``hour:minute`` in the patient's zone, returned in UTC."""
    local = datetime.combine(day, time(hour, minute), tzinfo=patient_zone(tz_name))
    return local.astimezone(timezone.utc)


def local_day_bounds(day: date, tz_name: Optional[str]) -> tuple:
    """[start, end) of a local calendar day, in UTC."""
    zone = patient_zone(tz_name)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(date.fromordinal(day.toordinal() + 1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def construct_question_message(first_name: str, questions: Iterable) -> str:
    """WhatsApp body for all questions of one slot, in send order."""
    lines = [f"Hello, {first_name}!"]
    for question in questions:
        lines.append("")
        lines.append(question.question_text)
        for i, option in enumerate(question.options or [], start=1):
            lines.append(f"  {i}. {option}")
    return "\n".join(lines)


def construct_missed_report_reminder(full_name: str) -> str:
    return (
        f"Hello, {full_name}! We have not received your report. "
        "Please answer the questions, it is important for your treatment."
    )


def construct_visit_reminder(full_name: str, scheduled: datetime, same_day: bool) -> str:
    when = "today" if same_day else "tomorrow"
    local = scheduled.astimezone(patient_zone(None))
    return f"Reminder: {full_name}, you have a clinic visit {when} at {local.strftime('%H:%M')}."

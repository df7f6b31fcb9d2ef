import logging

from celery_app import celery_app
from services.scheduler_service import SchedulerService
from tasks.utils import run_with_session

logger = logging.getLogger(__name__)


@celery_app.task(name="run_schedule_sweep")
def run_schedule_sweep():
    result = run_with_session(lambda db: SchedulerService(db).sweep())
    return result.model_dump()


@celery_app.task(name="check_missed_questions")
def check_missed_questions():
    created = run_with_session(lambda db: SchedulerService(db).check_missed_questions())
    return {"status": "ok", "alerts_created": created}


@celery_app.task(name="send_missed_reminders")
def send_missed_reminders():
    sent = run_with_session(lambda db: SchedulerService(db).send_missed_reminders())
    return {"status": "ok", "sent": sent}


@celery_app.task(name="escalate_unhandled_alerts")
def escalate_unhandled_alerts():
    escalated = run_with_session(lambda db: SchedulerService(db).escalate_unhandled_alerts())
    return {"status": "ok", "escalated": escalated}


@celery_app.task(name="check_visits")
def check_visits():
    sent = run_with_session(lambda db: SchedulerService(db).check_visits())
    return {"status": "ok", "sent": sent}

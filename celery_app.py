from celery import Celery
from celery.signals import setup_logging as celery_setup_logging, task_prerun
from core.config import settings
from core.logging import setup_logging
from celery.schedules import crontab

celery_app = Celery(
    settings.APP_NAME,
    broker=settings.broker_url,
    backend=settings.result_backend,
    include=[
        "tasks.delivery_tasks",
        "tasks.analysis_tasks",
        "tasks.scheduler_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_routes={
        "deliver_scheduled_message": {"queue": "delivery"},
        "process_answer": {"queue": "analysis"},
    },
    beat_schedule={
        "schedule-sweep": {
            "task": "run_schedule_sweep",
            "schedule": settings.SWEEP_INTERVAL_MINUTES * 60.0,
        },
        "daily-check-missed-questions": {
            "task": "check_missed_questions",
            "schedule": crontab(hour=0, minute=30),
        },
        "send-missed-report-reminders": {
            "task": "send_missed_reminders",
            "schedule": crontab(minute="*/30"),
        },
        "escalate-unhandled-alerts": {
            "task": "escalate_unhandled_alerts",
            "schedule": crontab(minute="*/30"),
        },
        "hourly-visit-reminders": {
            "task": "check_visits",
            "schedule": crontab(minute=15),
        },
    },
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    # Connecting here disables Celery's own root logger setup
    setup_logging("worker")


@task_prerun.connect
def refresh_integrations(**kwargs):
    # Credentials saved through the API reach workers before their next task
    from services.integration_service import IntegrationService

    IntegrationService().sync()

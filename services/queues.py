"""
Celery-backed job queues.

Delivery jobs are keyed by ``(patient, period, day, slot)``. The key is
claimed in Redis with ``SET NX EX`` before the job is published, so repeated
sweeps (startup plus the hourly beat) never publish the same slot twice while
the key lives. The same key is the Celery task id.
"""

from datetime import datetime
from typing import Optional

from core.config import settings
from core.logging import get_logger
from schemas.delivery import AnalysisJob, DeliveryJob

logger = get_logger(__name__)

DELIVERY_TASK = "deliver_scheduled_message"
ANALYSIS_TASK = "process_answer"


class DeliveryQueue:
    def __init__(self, celery_app, redis_client, dedup_ttl: Optional[int] = None):
        self.celery_app = celery_app
        self.redis = redis_client
        self.dedup_ttl = dedup_ttl or settings.DELIVERY_DEDUP_TTL_SECONDS

    def enqueue(self, job: DeliveryJob, now: datetime) -> bool:
        """Publish ``job`` unless its key was already claimed; returns True when published."""
        key = job.key
        claimed = self.redis.set(key, job.scheduled_at.isoformat(), nx=True, ex=self.dedup_ttl)
        if not claimed:
            logger.debug("Delivery job already queued", key=key)
            return False

        eta = max(job.scheduled_at, now)
        try:
            self.celery_app.send_task(
                DELIVERY_TASK,
                args=[job.model_dump(mode="json")],
                eta=eta,
                task_id=key,
                queue="delivery",
            )
        except Exception:
            # Release the key so the next sweep can try again
            self.redis.delete(key)
            raise

        logger.info(
            "Delivery job queued",
            key=key,
            patient_id=job.patient_id,
            period_id=job.period_id,
            day_number=job.day_number,
            time_slot=job.time_slot.value,
            eta=eta.isoformat(),
        )
        return True


class AnalysisQueue:
    def __init__(self, celery_app):
        self.celery_app = celery_app

    def enqueue(self, answer_id: int) -> None:
        job = AnalysisJob(answer_id=answer_id)
        self.celery_app.send_task(
            ANALYSIS_TASK,
            args=[job.model_dump(mode="json")],
            queue="analysis",
        )
        logger.info("Analysis job queued", answer_id=answer_id)


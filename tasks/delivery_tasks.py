import logging

from celery_app import celery_app
from core.config import settings
from schemas.delivery import DeliveryJob
from services.delivery_service import DeliveryService
from tasks.utils import backoff_delay, run_with_session

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="deliver_scheduled_message", max_retries=settings.DELIVERY_MAX_ATTEMPTS - 1)
def deliver_scheduled_message(self, payload: dict):
    job = DeliveryJob.model_validate(payload)
    try:
        sid = run_with_session(lambda db: DeliveryService(db).deliver(job))
        return {"status": "sent" if sid else "skipped", "key": job.key, "sid": sid}
    except Exception as e:
        if self.request.retries >= self.max_retries:
            logger.error(f"Delivery of {job.key} failed after {self.request.retries + 1} attempts: {e}")
            run_with_session(lambda db: DeliveryService(db).record_failure(job, str(e)))
            return {"status": "failed", "key": job.key}
        logger.warning(f"Delivery of {job.key} failed, retrying: {e}")
        raise self.retry(exc=e, countdown=backoff_delay(self.request.retries))

import logging

from celery_app import celery_app
from core.config import settings
from schemas.delivery import AnalysisJob
from services.answer_processor import AnswerProcessor
from tasks.utils import backoff_delay, run_with_session

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="process_answer", max_retries=settings.ANALYSIS_MAX_ATTEMPTS - 1)
def process_answer(self, payload: dict):
    job = AnalysisJob.model_validate(payload)
    try:
        answer = run_with_session(lambda db: AnswerProcessor(db).process_answer(job.answer_id))
        return {"status": "processed" if answer else "missing", "answer_id": job.answer_id}
    except Exception as e:
        if self.request.retries >= self.max_retries:
            logger.error(f"Analysis of answer {job.answer_id} failed after {self.request.retries + 1} attempts: {e}")
            run_with_session(lambda db: AnswerProcessor(db).record_failure(job.answer_id, str(e)))
            return {"status": "failed", "answer_id": job.answer_id}
        logger.warning(f"Analysis of answer {job.answer_id} failed, retrying: {e}")
        raise self.retry(exc=e, countdown=backoff_delay(self.request.retries))

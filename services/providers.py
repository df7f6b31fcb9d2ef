"""
Process-wide collaborators, created on first use.

Services accept these as constructor arguments; when omitted they fall back
to the shared instances below. Tests pass their own.
"""

from typing import Optional

from core.config import settings
from core.events import EventBus, RedisStreamPublisher
from core.logging import get_logger
from core.redis import get_redis

logger = get_logger(__name__)

_transport = None
_notifier = None
_event_bus: Optional[EventBus] = None
_analyzer = None
_transcriber = None
_delivery_queue = None
_analysis_queue = None


def get_transport():
    global _transport
    if _transport is None:
        from services.whatsapp_service import WhatsAppService

        _transport = WhatsAppService()
    return _transport


def get_notifier():
    global _notifier
    if _notifier is None:
        from services.notifications import NotificationDispatcher

        _notifier = NotificationDispatcher(get_transport())
    return _notifier


def get_event_bus() -> EventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
        if settings.EVENTS_STREAM_ENABLED:
            _event_bus.subscribe(
                None,
                RedisStreamPublisher(get_redis(), settings.EVENTS_STREAM, settings.EVENTS_STREAM_MAXLEN),
            )
            logger.info("Domain events published to Redis stream", stream=settings.EVENTS_STREAM)
    return _event_bus


def get_analyzer():
    global _analyzer
    if _analyzer is None:
        from services.ai_analysis_service import AIAnalysisService

        _analyzer = AIAnalysisService()
    return _analyzer


def get_transcriber():
    global _transcriber
    if _transcriber is None:
        from services.ai_analysis_service import TranscriptionService

        _transcriber = TranscriptionService()
    return _transcriber


def get_delivery_queue():
    global _delivery_queue
    if _delivery_queue is None:
        from celery_app import celery_app
        from services.queues import DeliveryQueue

        _delivery_queue = DeliveryQueue(celery_app, get_redis())
    return _delivery_queue


def get_analysis_queue():
    global _analysis_queue
    if _analysis_queue is None:
        from celery_app import celery_app
        from services.queues import AnalysisQueue

        _analysis_queue = AnalysisQueue(celery_app)
    return _analysis_queue

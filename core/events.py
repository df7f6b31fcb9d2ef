"""
Domain events.

Events form a closed set of pydantic models discriminated by ``kind``, so a
consumer can validate any payload it reads back with ``parse_event``. The bus
is fire-and-forget: a failing subscriber is logged and never propagates into
the state transition that emitted the event.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Annotated, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from core.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _EventBase(BaseModel):
    occurred_at: datetime = Field(default_factory=_utcnow)


class PatientCreated(_EventBase):
    kind: Literal["patient.created"] = "patient.created"
    patient_id: int


class PeriodStarted(_EventBase):
    kind: Literal["period.started"] = "period.started"
    period_id: int
    patient_id: int


class PeriodCompleted(_EventBase):
    kind: Literal["period.completed"] = "period.completed"
    period_id: int
    patient_id: int
    crm_lead_id: Optional[str] = None


class AlertCreated(_EventBase):
    kind: Literal["alert.created"] = "alert.created"
    alert_id: int
    patient_id: int
    type: str
    risk_level: str


DomainEvent = Annotated[
    Union[PatientCreated, PeriodStarted, PeriodCompleted, AlertCreated],
    Field(discriminator="kind"),
]

_event_adapter = TypeAdapter(DomainEvent)


def parse_event(data: Union[dict, str]) -> DomainEvent:
    """Validate a serialized event back into its model."""
    if isinstance(data, str):
        return _event_adapter.validate_json(data)
    return _event_adapter.validate_python(data)


Subscriber = Callable[[BaseModel], None]


class EventBus:
    """In-process publish/subscribe for domain events."""

    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._catch_all: List[Subscriber] = []

    def subscribe(self, kind: Optional[str], handler: Subscriber) -> None:
        """Register ``handler`` for one event kind, or for all kinds when ``kind`` is None."""
        if kind is None:
            self._catch_all.append(handler)
        else:
            self._subscribers[kind].append(handler)

    def emit(self, event: DomainEvent) -> None:
        handlers = [*self._subscribers.get(event.kind, []), *self._catch_all]
        logger.info("Domain event emitted", kind=event.kind, subscribers=len(handlers))
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error("Event subscriber failed", kind=event.kind, error=str(e))


class RedisStreamPublisher:
    """Appends every event to a Redis stream read by the CRM sync consumer."""

    def __init__(self, redis_client, stream: str, maxlen: int = 10000):
        self.redis = redis_client
        self.stream = stream
        self.maxlen = maxlen

    def __call__(self, event: BaseModel) -> None:
        self.redis.xadd(
            self.stream,
            {"kind": event.kind, "payload": event.model_dump_json()},
            maxlen=self.maxlen,
            approximate=True,
        )

"""
Shared fixtures.

Each test gets a fresh in-memory SQLite database. The WhatsApp transport, the
staff notifier and the Celery app are mocks; Redis is fakeredis.
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from core.database import Base
from core.events import EventBus
from models.answer import Answer, RiskLevel
from models.patient import Patient
from models.question import QuestionTemplate, ResponseType, TimeSlot
from models.user import User, UserRole
from schemas.period import PeriodCreate
from services.alert_service import AlertService
from services.period_service import PeriodService
from services.queues import DeliveryQueue


def utc(year, month, day, hour=0, minute=0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


START = date(2026, 3, 1)


# ── Database ──


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


# ── Collaborators ──


@pytest.fixture
def emitted():
    return []


@pytest.fixture
def events(emitted):
    bus = EventBus()
    bus.subscribe(None, emitted.append)
    return bus


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.send.return_value = "SM-notify"
    return mock


@pytest.fixture
def transport():
    mock = AsyncMock()
    mock.send.return_value = "SM-delivery"
    return mock


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def celery():
    return MagicMock()


@pytest.fixture
def delivery_queue(celery, redis_client):
    return DeliveryQueue(celery, redis_client, dedup_ttl=3600)


@pytest.fixture
def analysis_queue():
    return MagicMock()


@pytest.fixture
def alert_service(db, notifier, events):
    return AlertService(db, notifier=notifier, events=events)


# ── People ──


async def _add(db, obj):
    db.add(obj)
    await db.commit()
    return obj


@pytest_asyncio.fixture
async def tracker(db):
    return await _add(
        db,
        User(full_name="Tina Tracker", email="tracker@clinic.test", phone="+10000000001", role=UserRole.TRACKER),
    )


@pytest_asyncio.fixture
async def doctor(db):
    return await _add(
        db,
        User(full_name="Dr. Oleg Smirnov", email="doctor@clinic.test", phone="+10000000002", role=UserRole.DOCTOR),
    )


@pytest_asyncio.fixture
async def patient(db, tracker, doctor):
    return await _add(
        db,
        Patient(
            full_name="Ivan Petrov",
            phone="+79991234567",
            timezone="UTC",
            tracker_id=tracker.id,
            doctor_id=doctor.id,
            crm_lead_id="lead-42",
        ),
    )


# ── Periods and questions ──


@pytest.fixture
def start_period(db, events):
    async def _start(patient, start_date=START, duration_days=3, **kwargs):
        service = PeriodService(db, events=events)
        return await service.create(
            PeriodCreate(
                patient_id=patient.id,
                name="Post-op recovery",
                start_date=start_date,
                duration_days=duration_days,
                **kwargs,
            )
        )

    return _start


@pytest.fixture
def add_question(db):
    async def _add_question(period, day_number, time_slot, order=0, **kwargs):
        kwargs.setdefault("question_text", f"Day {day_number} {time_slot.value} #{order}")
        kwargs.setdefault("response_type", ResponseType.TEXT)
        kwargs.setdefault("is_required", True)
        question = QuestionTemplate(
            period_id=period.id,
            day_number=day_number,
            time_slot=time_slot,
            order=order,
            **kwargs,
        )
        return await _add(db, question)

    return _add_question


@pytest.fixture
def add_answer(db):
    async def _add_answer(period, question, text="fine", **kwargs):
        answer = Answer(
            patient_id=period.patient_id,
            period_id=period.id,
            question_template_id=question.id,
            day_number=question.day_number,
            time_slot=TimeSlot(question.time_slot),
            text_content=text,
            risk_level=kwargs.pop("risk_level", RiskLevel.LOW),
            **kwargs,
        )
        return await _add(db, answer)

    return _add_answer

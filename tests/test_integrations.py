"""
Tests for the edges of the system: webhook payload parsing, phone
normalisation, AI reply validation, domain events, runtime integration config
and the Twilio transport.
"""

import json
from datetime import date, datetime, timezone

import fakeredis
import httpx
import pytest

from core.events import AlertCreated, EventBus, PeriodCompleted, RedisStreamPublisher, parse_event
from core.exceptions import AnalysisError, AppError
from core.integrations import IntegrationConfigHolder, TwilioConfig
from models.answer import RiskLevel
from models.patient import canonical_phone
from schemas.integration import OpenAICredentials, WhatsAppCredentials
from schemas.whatsapp import MessageKind, parse_green_api, parse_twilio_form
from services import whatsapp_service
from services.ai_analysis_service import parse_analysis
from services.helpers import compute_day_number, local_slot_time
from services.integration_service import IntegrationService
from services.notifications import NotificationDispatcher
from services.whatsapp_service import WhatsAppService
from tests.conftest import utc


class TestCanonicalPhone:
    @pytest.mark.parametrize(
        "raw",
        ["whatsapp:+79991234567", "79991234567@c.us", "+7 (999) 123-45-67", "79991234567"],
    )
    def test_sender_formats(self, raw):
        assert canonical_phone(raw) == "+79991234567"

    @pytest.mark.parametrize("raw", [None, "", "whatsapp:", "@c.us"])
    def test_empty(self, raw):
        assert canonical_phone(raw) is None


class TestTwilioForm:
    def test_text(self):
        received = utc(2026, 3, 1, 10)

        message = parse_twilio_form(
            {"From": "whatsapp:+79991234567", "Body": "I feel fine", "NumMedia": "0", "MessageSid": "SM1"},
            received_at=received,
        )

        assert message.kind == MessageKind.TEXT
        assert message.content == "I feel fine"
        assert message.sent_at == received
        assert message.message_id == "SM1"

    def test_image_with_caption(self):
        message = parse_twilio_form(
            {
                "From": "whatsapp:+79991234567",
                "Body": "the wound today",
                "NumMedia": "1",
                "MediaUrl0": "https://media.test/1.jpg",
                "MediaContentType0": "image/jpeg",
            }
        )

        assert message.kind == MessageKind.IMAGE
        assert message.content == "the wound today"
        assert message.photo_url == "https://media.test/1.jpg"
        assert message.voice_url is None

    def test_voice_note(self):
        message = parse_twilio_form(
            {"From": "whatsapp:+79991234567", "NumMedia": "1", "MediaUrl0": "https://media.test/1.ogg", "MediaContentType0": "audio/ogg"}
        )

        assert message.kind == MessageKind.AUDIO
        assert message.voice_url == "https://media.test/1.ogg"
        assert message.content is None

    def test_without_sender(self):
        assert parse_twilio_form({"Body": "hi"}) is None

    def test_bad_media_count(self):
        assert parse_twilio_form({"From": "whatsapp:+7999", "Body": "hi", "NumMedia": "x"}).kind == MessageKind.TEXT


def _green(type_message, **message_data):
    return {
        "typeWebhook": "incomingMessageReceived",
        "timestamp": 1772359200,
        "idMessage": "BAE5",
        "senderData": {"sender": "79991234567@c.us", "chatId": "79991234567@c.us", "senderName": "Ivan"},
        "messageData": {"typeMessage": type_message, **message_data},
    }


class TestGreenApi:
    def test_text(self):
        message = parse_green_api(_green("textMessage", textMessageData={"textMessage": "Good"}))

        assert message.kind == MessageKind.TEXT
        assert message.content == "Good"
        assert message.sender == "79991234567@c.us"
        assert message.sent_at == datetime.fromtimestamp(1772359200, tz=timezone.utc)
        assert message.message_id == "BAE5"

    def test_extended_text(self):
        message = parse_green_api(_green("extendedTextMessage", extendedTextMessageData={"text": "see https://x.test"}))

        assert message.kind == MessageKind.EXTENDED_TEXT
        assert message.content == "see https://x.test"

    def test_image(self):
        message = parse_green_api(
            _green(
                "imageMessage",
                fileMessageData={"downloadUrl": "https://media.test/2.jpg", "caption": "swelling", "mimeType": "image/jpeg"},
            )
        )

        assert message.kind == MessageKind.IMAGE
        assert message.content == "swelling"
        assert message.photo_url == "https://media.test/2.jpg"

    def test_audio(self):
        message = parse_green_api(
            _green("audioMessage", fileMessageData={"downloadUrl": "https://media.test/2.ogg", "mimeType": "audio/ogg"})
        )

        assert message.kind == MessageKind.AUDIO
        assert message.voice_url == "https://media.test/2.ogg"

    def test_unsupported_type(self):
        message = parse_green_api(_green("locationMessage"))

        assert message.kind == MessageKind.OTHER
        assert message.content is None

    def test_status_webhooks_are_ignored(self):
        assert parse_green_api({"typeWebhook": "outgoingMessageStatus", "status": "read"}) is None

    def test_incoming_without_sender(self):
        payload = _green("textMessage", textMessageData={"textMessage": "Good"})
        del payload["senderData"]

        assert parse_green_api(payload) is None


class TestParseAnalysis:
    def test_valid_reply(self):
        result = parse_analysis(
            json.dumps(
                {
                    "sentiment": "negative",
                    "risk_level": "high",
                    "extracted_data": {"symptoms": ["fever"]},
                    "summary": "Fever since morning",
                    "should_alert": True,
                    "alert_reason": "fever",
                }
            )
        )

        assert result.risk_level == RiskLevel.HIGH
        assert result.should_alert is True
        assert result.extracted_data == {"symptoms": ["fever"]}

    def test_missing_fields_default(self):
        result = parse_analysis("{}")

        assert result.risk_level == RiskLevel.LOW
        assert result.should_alert is False

    @pytest.mark.parametrize("content", [None, "", "not json", "[1, 2]", '{"risk_level": "EXTREME"}'])
    def test_invalid_replies(self, content):
        with pytest.raises(AnalysisError):
            parse_analysis(content)


class TestDayNumbers:
    def test_counts_local_calendar_days(self):
        # 23:30 UTC on day 1 is already day 2 in Moscow
        assert compute_day_number(date(2026, 3, 1), utc(2026, 3, 1, 23, 30), "UTC") == 1
        assert compute_day_number(date(2026, 3, 1), utc(2026, 3, 1, 23, 30), "Europe/Moscow") == 2

    def test_before_start(self):
        assert compute_day_number(date(2026, 3, 5), utc(2026, 3, 1, 12), "UTC") == -3

    def test_unknown_zone_uses_default(self):
        assert local_slot_time(date(2026, 3, 1), 9, 0, "Mars/Olympus") == utc(2026, 3, 1, 9)

    def test_slot_time_in_patient_zone(self):
        assert local_slot_time(date(2026, 3, 1), 9, 0, "Asia/Tokyo") == utc(2026, 3, 1, 0)


class TestEvents:
    def test_failing_subscriber_does_not_propagate(self):
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("CRM down")

        bus.subscribe("period.completed", broken)
        bus.subscribe("period.completed", seen.append)
        bus.emit(PeriodCompleted(period_id=1, patient_id=2, crm_lead_id="lead-1"))

        assert [e.period_id for e in seen] == [1]

    def test_kind_filter(self):
        bus = EventBus()
        seen = []
        bus.subscribe("alert.created", seen.append)

        bus.emit(PeriodCompleted(period_id=1, patient_id=2))

        assert seen == []

    def test_stream_round_trip(self):
        client = fakeredis.FakeRedis(decode_responses=True)
        bus = EventBus()
        bus.subscribe(None, RedisStreamPublisher(client, "followup:events"))

        bus.emit(AlertCreated(alert_id=5, patient_id=2, type="NO_PHOTO", risk_level="MEDIUM"))

        [(_, fields)] = client.xrange("followup:events")
        assert fields["kind"] == "alert.created"
        event = parse_event(fields["payload"])
        assert isinstance(event, AlertCreated)
        assert event.alert_id == 5


def _twilio():
    return TwilioConfig(account_sid="AC1", auth_token="secret", from_number="+15550001111")


@pytest.fixture
def twilio_requests(monkeypatch):
    """Route the transport's HTTP calls to a mock handler; returns the captured requests."""
    captured = []
    replies = {"status": 201, "json": {"sid": "SM123"}}

    def handler(request):
        captured.append(request)
        return httpx.Response(replies["status"], json=replies["json"])

    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        return real_client(transport=httpx.MockTransport(handler))

    monkeypatch.setattr(whatsapp_service.httpx, "AsyncClient", client_factory)
    return captured, replies


class TestWhatsAppService:
    @pytest.mark.asyncio
    async def test_unconfigured_returns_none(self):
        service = WhatsAppService(config=IntegrationConfigHolder())

        assert await service.send("+79991234567", "hi") is None

    @pytest.mark.asyncio
    async def test_send(self, twilio_requests):
        captured, _ = twilio_requests
        service = WhatsAppService(config=IntegrationConfigHolder(_twilio()))

        sid = await service.send("+79991234567", "Hello")

        assert sid == "SM123"
        [request] = captured
        assert request.url.path == "/2010-04-01/Accounts/AC1/Messages.json"
        body = httpx.QueryParams(request.content.decode())
        assert body["To"] == "whatsapp:+79991234567"
        assert body["From"] == "whatsapp:+15550001111"
        assert body["Body"] == "Hello"

    @pytest.mark.asyncio
    async def test_provider_error_returns_none(self, twilio_requests):
        _, replies = twilio_requests
        replies.update(status=400, json={"message": "invalid number"})
        service = WhatsAppService(config=IntegrationConfigHolder(_twilio()))

        assert await service.send("+1", "Hello") is None

    @pytest.mark.asyncio
    async def test_swapped_credentials_apply_to_next_send(self, twilio_requests):
        captured, _ = twilio_requests
        holder = IntegrationConfigHolder(_twilio())
        service = WhatsAppService(config=holder)

        previous = holder.swap(TwilioConfig(account_sid="AC2", auth_token="new", from_number="+15550002222"))
        await service.send("+79991234567", "Hello")

        assert previous.account_sid == "AC1"
        assert "/Accounts/AC2/" in captured[0].url.path


class TestNotificationDispatcher:
    @pytest.mark.asyncio
    async def test_transport_error_is_swallowed(self, transport):
        transport.send.side_effect = httpx.ConnectError("down")

        assert await NotificationDispatcher(transport).send("+10000000001", "hi") is None

    @pytest.mark.asyncio
    async def test_missing_phone(self, transport):
        assert await NotificationDispatcher(transport).send(None, "hi") is None
        transport.send.assert_not_awaited()


@pytest.fixture
def integration_holders():
    return IntegrationConfigHolder(_twilio()), IntegrationConfigHolder()


@pytest.fixture
def integrations(redis_client, transport, integration_holders):
    whatsapp, openai = integration_holders
    return IntegrationService(redis_client, transport=transport, whatsapp=whatsapp, openai=openai)


class TestIntegrationService:
    def test_status(self, integrations):
        status = integrations.status()

        assert status.whatsapp.connected is True
        assert status.whatsapp.account == "+15550001111"
        assert status.openai.connected is False

    def test_saved_credentials_reach_other_processes(self, integrations, redis_client):
        integrations.save_whatsapp(WhatsAppCredentials(account_sid="AC9", auth_token="t", from_number="+15559990000"))
        integrations.save_openai(OpenAICredentials(api_key="sk-new", model="gpt-4o"))

        worker_whatsapp, worker_openai = IntegrationConfigHolder(_twilio()), IntegrationConfigHolder()
        worker = IntegrationService(redis_client, whatsapp=worker_whatsapp, openai=worker_openai)

        assert worker.sync() == 2
        assert worker_whatsapp.get().account_sid == "AC9"
        assert worker_openai.get().api_key == "sk-new"
        assert worker_openai.get().model == "gpt-4o"
        assert worker.sync() == 0

    def test_disconnect_reaches_other_processes(self, integrations, redis_client, integration_holders):
        integrations.disconnect_whatsapp()

        worker_whatsapp = IntegrationConfigHolder(_twilio())
        IntegrationService(redis_client, whatsapp=worker_whatsapp, openai=IntegrationConfigHolder()).sync()

        assert integration_holders[0].is_configured is False
        assert worker_whatsapp.is_configured is False

    def test_nothing_saved_keeps_environment_config(self, redis_client):
        holder = IntegrationConfigHolder(_twilio())

        assert IntegrationService(redis_client, whatsapp=holder, openai=IntegrationConfigHolder()).sync() == 0
        assert holder.get() == _twilio()

    @pytest.mark.asyncio
    async def test_check_message(self, integrations, transport):
        assert await integrations.send_check_message("+79991234567", "ping") == "SM-delivery"
        transport.send.assert_awaited_once_with("+79991234567", "ping")

    @pytest.mark.asyncio
    async def test_check_message_when_disconnected(self, integrations, transport):
        integrations.disconnect_whatsapp()

        with pytest.raises(AppError) as exc:
            await integrations.send_check_message("+79991234567", "ping")

        assert exc.value.code == "INTEGRATION_NOT_CONFIGURED"
        transport.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_check_message_rejected(self, integrations, transport):
        transport.send.return_value = None

        with pytest.raises(AppError) as exc:
            await integrations.send_check_message("+79991234567", "ping")

        assert exc.value.status_code == 400
        assert exc.value.code == "INTEGRATION_SEND_FAILED"

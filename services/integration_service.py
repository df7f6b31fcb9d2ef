"""
Runtime management of the WhatsApp and OpenAI credentials.

Saved credentials go to Redis as well as into this process's config holder.
Every other process (API replicas, Celery workers) calls ``sync`` to pick them
up: workers before each task, the API on startup and on status requests.

Redis keys, one per integration:
  - missing: nothing saved at runtime, the environment settings stay in force
  - empty string: disconnected
  - JSON: the saved configuration
"""

from typing import Optional

import redis

from core.exceptions import AppError
from core.integrations import (
    IntegrationConfigHolder,
    OpenAIConfig,
    TwilioConfig,
    openai_config,
    twilio_config,
)
from core.logging import get_logger
from core.redis import get_redis
from schemas.integration import IntegrationState, IntegrationStatus, OpenAICredentials, WhatsAppCredentials

logger = get_logger(__name__)

INTEGRATION_KEY_PREFIX = "integrations"
WHATSAPP = "whatsapp"
OPENAI = "openai"


def _key(name: str) -> str:
    return f"{INTEGRATION_KEY_PREFIX}:{name}"


class IntegrationService:
    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        transport=None,
        whatsapp: Optional[IntegrationConfigHolder[TwilioConfig]] = None,
        openai: Optional[IntegrationConfigHolder[OpenAIConfig]] = None,
    ):
        self.redis = redis_client if redis_client is not None else get_redis()
        self.holders = {
            WHATSAPP: (whatsapp or twilio_config, TwilioConfig),
            OPENAI: (openai or openai_config, OpenAIConfig),
        }
        self._transport = transport

    @property
    def transport(self):
        if self._transport is None:
            from services.whatsapp_service import WhatsAppService

            self._transport = WhatsAppService(config=self.holders[WHATSAPP][0])
        return self._transport

    def status(self) -> IntegrationStatus:
        whatsapp = self.holders[WHATSAPP][0].get()
        openai = self.holders[OPENAI][0].get()
        return IntegrationStatus(
            whatsapp=IntegrationState(connected=whatsapp is not None, account=whatsapp.from_number if whatsapp else None),
            openai=IntegrationState(connected=openai is not None, account=openai.model if openai else None),
        )

    def save_whatsapp(self, data: WhatsAppCredentials) -> IntegrationStatus:
        self._publish(WHATSAPP, TwilioConfig(**data.model_dump()))
        return self.status()

    def save_openai(self, data: OpenAICredentials) -> IntegrationStatus:
        current = self.holders[OPENAI][0].get()
        extra = {"transcription_model": current.transcription_model} if current else {}
        self._publish(OPENAI, OpenAIConfig(**data.model_dump(), **extra))
        return self.status()

    def disconnect_whatsapp(self) -> IntegrationStatus:
        self._publish(WHATSAPP, None)
        return self.status()

    def disconnect_openai(self) -> IntegrationStatus:
        self._publish(OPENAI, None)
        return self.status()

    async def send_check_message(self, phone: str, text: str) -> str:
        if not self.holders[WHATSAPP][0].is_configured:
            raise AppError.bad_request("WhatsApp is not connected", code="INTEGRATION_NOT_CONFIGURED")
        sid = await self.transport.send(phone, text)
        if sid is None:
            raise AppError.bad_request("WhatsApp provider rejected the message", code="INTEGRATION_SEND_FAILED", phone=phone)
        logger.info("WhatsApp check message sent", message_id=sid)
        return sid

    def sync(self) -> int:
        """Apply credentials saved by other processes; returns how many holders changed."""
        changed = 0
        for name, (holder, model) in self.holders.items():
            try:
                raw = self.redis.get(_key(name))
            except redis.RedisError as e:
                logger.warning("Integration config not refreshed", integration=name, error=str(e))
                continue
            if raw is None:
                continue
            config = model.model_validate_json(raw) if raw else None
            if config != holder.get():
                holder.swap(config)
                changed += 1
                logger.info("Integration config refreshed", integration=name, connected=config is not None)
        return changed

    def _publish(self, name: str, config) -> None:
        holder, _ = self.holders[name]
        self.redis.set(_key(name), config.model_dump_json() if config is not None else "")
        holder.swap(config)
        logger.info("Integration config saved", integration=name, connected=config is not None)

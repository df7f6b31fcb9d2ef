"""
Runtime configuration for external integrations.

Credentials can change while workers are sending messages (an admin updates
the WhatsApp or OpenAI keys). Each collaborator holds an
``IntegrationConfigHolder`` and reads one immutable snapshot per call;
``swap`` replaces the snapshot under a lock, so an in-flight call never sees a
half-updated configuration.
"""

import threading
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

from core.config import settings

ConfigT = TypeVar("ConfigT", bound=BaseModel)


class TwilioConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    account_sid: str
    auth_token: str
    from_number: str
    api_base: str = "https://api.twilio.com/2010-04-01"


class OpenAIConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: str
    model: str = "gpt-4o-mini"
    max_tokens: int = 800
    temperature: float = 0.2
    transcription_model: str = "whisper-1"
    transcription_enabled: bool = False


class IntegrationConfigHolder(Generic[ConfigT]):
    """Holds the current configuration of one integration."""

    def __init__(self, initial: Optional[ConfigT] = None):
        self._lock = threading.Lock()
        self._config = initial

    def get(self) -> Optional[ConfigT]:
        with self._lock:
            return self._config

    def swap(self, new_config: Optional[ConfigT]) -> Optional[ConfigT]:
        """Install ``new_config`` and return the previous one."""
        with self._lock:
            previous, self._config = self._config, new_config
        return previous

    @property
    def is_configured(self) -> bool:
        return self.get() is not None


def twilio_config_from_settings() -> Optional[TwilioConfig]:
    if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_WHATSAPP_FROM_NUMBER):
        return None
    return TwilioConfig(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        from_number=settings.TWILIO_WHATSAPP_FROM_NUMBER,
    )


def openai_config_from_settings() -> Optional[OpenAIConfig]:
    if not settings.OPENAI_API_KEY:
        return None
    return OpenAIConfig(
        api_key=settings.OPENAI_API_KEY,
        model=settings.OPENAI_MODEL or "gpt-4o-mini",
        max_tokens=int(settings.OPENAI_MAX_TOKENS or 800),
        temperature=float(settings.OPENAI_TEMPERATURE if settings.OPENAI_TEMPERATURE is not None else 0.2),
        transcription_model=settings.OPENAI_TRANSCRIPTION_MODEL,
        transcription_enabled=settings.TRANSCRIPTION_ENABLED,
    )


twilio_config = IntegrationConfigHolder[TwilioConfig](twilio_config_from_settings())
openai_config = IntegrationConfigHolder[OpenAIConfig](openai_config_from_settings())

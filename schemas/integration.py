from typing import Optional

from pydantic import BaseModel, Field


class WhatsAppCredentials(BaseModel):
    account_sid: str = Field(min_length=1)
    auth_token: str = Field(min_length=1)
    from_number: str = Field(min_length=1)


class OpenAICredentials(BaseModel):
    api_key: str = Field(min_length=1)
    model: str = "gpt-4o-mini"
    max_tokens: int = Field(default=800, ge=1)
    temperature: float = Field(default=0.2, ge=0, le=2)
    transcription_enabled: bool = False


class IntegrationState(BaseModel):
    connected: bool
    # Non-secret identifier of the active account (sender number, model name)
    account: Optional[str] = None


class IntegrationStatus(BaseModel):
    whatsapp: IntegrationState
    openai: IntegrationState


class WhatsAppCheckMessage(BaseModel):
    phone: str = Field(min_length=1)
    text: str = Field(default="Test message from the follow-up tracker", min_length=1)


class WhatsAppCheckResult(BaseModel):
    message_id: str

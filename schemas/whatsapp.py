"""
Inbound WhatsApp messages.

Two providers post to the webhooks: Twilio (form-encoded) and Green-API
(JSON). Both are normalised into ``InboundMessage`` before ingestion.
"""

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Any, Mapping, Optional

from pydantic import BaseModel


class MessageKind(str, PyEnum):
    TEXT = "text"
    EXTENDED_TEXT = "extended_text"
    IMAGE = "image"
    AUDIO = "audio"
    OTHER = "other"


class InboundMessage(BaseModel):
    sender: str
    kind: MessageKind
    sent_at: datetime
    text: Optional[str] = None
    extended_text: Optional[str] = None
    caption: Optional[str] = None
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    message_id: Optional[str] = None

    @property
    def content(self) -> Optional[str]:
        """Text carried by the message, read from the field its kind uses."""
        if self.kind == MessageKind.TEXT:
            return self.text
        if self.kind == MessageKind.EXTENDED_TEXT:
            return self.extended_text
        if self.kind in (MessageKind.IMAGE, MessageKind.AUDIO):
            return self.caption
        return self.text or self.extended_text or self.caption

    @property
    def photo_url(self) -> Optional[str]:
        return self.media_url if self.kind == MessageKind.IMAGE else None

    @property
    def voice_url(self) -> Optional[str]:
        return self.media_url if self.kind == MessageKind.AUDIO else None


def _kind_from_mime(mime: Optional[str]) -> MessageKind:
    if not mime:
        return MessageKind.OTHER
    if mime.startswith("image/"):
        return MessageKind.IMAGE
    if mime.startswith("audio/"):
        return MessageKind.AUDIO
    return MessageKind.OTHER


def parse_twilio_form(form: Mapping[str, Any], received_at: Optional[datetime] = None) -> Optional[InboundMessage]:
    """Twilio posts no send time, so the receipt time stands in for it."""
    sender = form.get("From")
    if not sender:
        return None

    sent_at = received_at or datetime.now(timezone.utc)
    body = form.get("Body") or None
    try:
        num_media = int(form.get("NumMedia") or 0)
    except (TypeError, ValueError):
        num_media = 0

    if num_media > 0:
        mime = form.get("MediaContentType0")
        return InboundMessage(
            sender=sender,
            kind=_kind_from_mime(mime),
            sent_at=sent_at,
            caption=body,
            media_url=form.get("MediaUrl0"),
            media_type=mime,
            message_id=form.get("MessageSid"),
        )

    return InboundMessage(
        sender=sender,
        kind=MessageKind.TEXT,
        sent_at=sent_at,
        text=body,
        message_id=form.get("MessageSid"),
    )


class _GreenTextData(BaseModel):
    textMessage: Optional[str] = None


class _GreenExtendedTextData(BaseModel):
    text: Optional[str] = None


class _GreenFileData(BaseModel):
    downloadUrl: Optional[str] = None
    caption: Optional[str] = None
    mimeType: Optional[str] = None


class _GreenMessageData(BaseModel):
    typeMessage: str
    textMessageData: Optional[_GreenTextData] = None
    extendedTextMessageData: Optional[_GreenExtendedTextData] = None
    fileMessageData: Optional[_GreenFileData] = None


class _GreenSenderData(BaseModel):
    sender: str
    chatId: Optional[str] = None
    senderName: Optional[str] = None


class GreenApiWebhook(BaseModel):
    typeWebhook: str
    timestamp: Optional[int] = None
    idMessage: Optional[str] = None
    senderData: Optional[_GreenSenderData] = None
    messageData: Optional[_GreenMessageData] = None


_GREEN_FILE_KINDS = {
    "imageMessage": MessageKind.IMAGE,
    "audioMessage": MessageKind.AUDIO,
}


def parse_green_api(payload: Mapping[str, Any]) -> Optional[InboundMessage]:
    """Returns None for anything that is not an incoming message."""
    if payload.get("typeWebhook") != "incomingMessageReceived":
        return None

    hook = GreenApiWebhook.model_validate(payload)
    if hook.senderData is None or hook.messageData is None:
        return None

    data = hook.messageData
    sent_at = (
        datetime.fromtimestamp(hook.timestamp, tz=timezone.utc)
        if hook.timestamp is not None
        else datetime.now(timezone.utc)
    )
    message = InboundMessage(
        sender=hook.senderData.sender,
        kind=MessageKind.OTHER,
        sent_at=sent_at,
        message_id=hook.idMessage,
    )

    if data.typeMessage == "textMessage" and data.textMessageData:
        message.kind = MessageKind.TEXT
        message.text = data.textMessageData.textMessage
    elif data.typeMessage == "extendedTextMessage" and data.extendedTextMessageData:
        message.kind = MessageKind.EXTENDED_TEXT
        message.extended_text = data.extendedTextMessageData.text
    elif data.fileMessageData:
        message.kind = _GREEN_FILE_KINDS.get(data.typeMessage, MessageKind.OTHER)
        message.caption = data.fileMessageData.caption
        message.media_url = data.fileMessageData.downloadUrl
        message.media_type = data.fileMessageData.mimeType

    return message

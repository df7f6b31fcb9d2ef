"""
WhatsApp Webhook Endpoints

Inbound replies from Twilio (form-encoded) and Green-API (JSON). Both always
answer 200 so the provider does not redeliver; failures are logged only.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db_session
from core.logging import get_logger
from schemas.whatsapp import InboundMessage, parse_green_api, parse_twilio_form
from services.answer_service import AnswerService

logger = get_logger(__name__)

router = APIRouter()


async def _ingest(db: AsyncSession, message: InboundMessage) -> dict:
    answer = await AnswerService(db).ingest(message)
    if answer is None:
        return {"status": "ignored"}
    return {"status": "received", "answer_id": answer.id}


@router.post("/twilio")
async def receive_twilio_message(request: Request, db: AsyncSession = Depends(get_db_session)):
    """Webhook endpoint for Twilio incoming WhatsApp messages."""
    try:
        form_data = await request.form()
        message = parse_twilio_form(dict(form_data))
        if message is None:
            logger.warning("Twilio webhook without sender")
            return {"status": "ignored"}

        logger.info("Twilio incoming message", sender=message.sender, kind=message.kind.value, message_sid=message.message_id)
        return await _ingest(db, message)

    except Exception as e:
        logger.exception("Error processing Twilio webhook", error=str(e))
        return {"status": "error"}


@router.post("/green-api")
async def receive_green_api_message(request: Request, db: AsyncSession = Depends(get_db_session)):
    """Webhook endpoint for Green-API notifications; only incoming messages are handled."""
    try:
        payload = await request.json()
        message = parse_green_api(payload)
        if message is None:
            logger.debug("Green-API notification ignored", type_webhook=payload.get("typeWebhook"))
            return {"status": "ignored"}

        logger.info("Green-API incoming message", sender=message.sender, kind=message.kind.value, message_id=message.message_id)
        return await _ingest(db, message)

    except Exception as e:
        logger.exception("Error processing Green-API webhook", error=str(e))
        return {"status": "error"}

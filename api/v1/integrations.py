"""
Integration Endpoints

Connection status and runtime credentials for WhatsApp (Twilio) and OpenAI.
"""

from fastapi import APIRouter, Depends

from api.deps import get_integration_service
from core.logging import get_logger
from schemas.integration import (
    IntegrationStatus,
    OpenAICredentials,
    WhatsAppCheckMessage,
    WhatsAppCheckResult,
    WhatsAppCredentials,
)
from services.integration_service import IntegrationService

logger = get_logger(__name__)

router = APIRouter()


@router.get("/status", response_model=IntegrationStatus, summary="Integration status")
async def get_status(service: IntegrationService = Depends(get_integration_service)):
    service.sync()
    return service.status()


@router.put("/whatsapp", response_model=IntegrationStatus, summary="Save WhatsApp credentials")
async def save_whatsapp(request: WhatsAppCredentials, service: IntegrationService = Depends(get_integration_service)):
    logger.info("WhatsApp credentials update requested", from_number=request.from_number)
    return service.save_whatsapp(request)


@router.delete("/whatsapp", response_model=IntegrationStatus, summary="Disconnect WhatsApp")
async def disconnect_whatsapp(service: IntegrationService = Depends(get_integration_service)):
    return service.disconnect_whatsapp()


@router.post("/whatsapp/test", response_model=WhatsAppCheckResult, summary="Send a WhatsApp test message")
async def send_test_message(request: WhatsAppCheckMessage, service: IntegrationService = Depends(get_integration_service)):
    message_id = await service.send_check_message(request.phone, request.text)
    return WhatsAppCheckResult(message_id=message_id)


@router.put("/openai", response_model=IntegrationStatus, summary="Save OpenAI credentials")
async def save_openai(request: OpenAICredentials, service: IntegrationService = Depends(get_integration_service)):
    logger.info("OpenAI credentials update requested", model=request.model)
    return service.save_openai(request)


@router.delete("/openai", response_model=IntegrationStatus, summary="Disconnect OpenAI")
async def disconnect_openai(service: IntegrationService = Depends(get_integration_service)):
    return service.disconnect_openai()

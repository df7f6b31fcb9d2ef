import httpx
from typing import Optional

from core.integrations import IntegrationConfigHolder, TwilioConfig, twilio_config
from core.logging import get_logger

logger = get_logger(__name__)


class WhatsAppService:
    """WhatsApp transport for sending free-form messages via Twilio."""

    def __init__(self, config: Optional[IntegrationConfigHolder[TwilioConfig]] = None, timeout: float = 30.0):
        self.config = config or twilio_config
        self.timeout = timeout

    @staticmethod
    def _messages_url(config: TwilioConfig) -> str:
        return f"{config.api_base}/Accounts/{config.account_sid}/Messages.json"

    async def send(self, to_phone: str, message: str) -> Optional[str]:
        """
        Send a WhatsApp text message.

        Args:
            to_phone: Recipient phone number (format: +1234567890)
            message: Message content

        Returns:
            The provider message SID, or None when the message was not accepted.
        """
        # One snapshot per call; a concurrent swap() affects the next send only
        config = self.config.get()
        if config is None:
            logger.error("WhatsApp transport is not configured", to_phone=to_phone)
            return None

        if not to_phone.startswith("whatsapp:"):
            to_phone = f"whatsapp:{to_phone}"
        from_number = config.from_number
        if not from_number.startswith("whatsapp:"):
            from_number = f"whatsapp:{from_number}"

        message_data = {
            "From": from_number,
            "To": to_phone,
            "Body": message,
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self._messages_url(config),
                    auth=(config.account_sid, config.auth_token),
                    data=message_data,
                    timeout=self.timeout,
                )

                response.raise_for_status()
                result = response.json()

            sid = result.get("sid")
            logger.info("WhatsApp message sent", to_phone=to_phone, sid=sid)
            return sid

        except httpx.HTTPStatusError as e:
            logger.error(
                "Twilio API error",
                to_phone=to_phone,
                status_code=e.response.status_code,
                body=e.response.text,
            )
            return None
        except httpx.HTTPError as e:
            logger.error("Error sending WhatsApp message", to_phone=to_phone, error=str(e))
            return None

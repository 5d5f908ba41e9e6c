import requests
import logging
from typing import Optional
from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


class EmailService:
    """Transactional e-mail through the Resend HTTP API"""

    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.sender = sender or settings.EMAIL_FROM
        self.base_url = settings.RESEND_API_URL
        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def send_email(self, to: str, subject: str, body: str) -> bool:
        """Send a plain-text e-mail. Returns False when no API key is configured."""
        if not self.enabled:
            logger.info(f"Email disabled, skipping '{subject}' to {to}")
            return False

        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "text": body,
        }
        try:
            response = requests.post(self.base_url, headers=self.headers, json=payload, timeout=15)
        except requests.RequestException as e:
            logger.error(f"Resend request failed for {to}: {e}")
            raise EmailDeliveryError(f"Connection error: {e}") from e

        if response.status_code >= 300:
            logger.error(f"Resend rejected email to {to}: {response.status_code} - {response.text}")
            raise EmailDeliveryError(f"API Error: {response.status_code}")

        logger.info(f"Email '{subject}' sent to {to}")
        return True

"""EmailJSNotifier - delivers messages through the EmailJS REST API."""

import asyncio
import logging
import warnings
from typing import Any, Dict, Optional

import aiohttp

from ..errors import DeliveryError
from .base import Notifier

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.emailjs.com/api/v1.0/email/send"


class EmailJSNotifier(Notifier):
    """Sends email via an EmailJS service/template pair.

    Config keys:
        service_id, template_id, public_key: EmailJS identifiers (required)
        private_key: optional access token for strict-mode accounts
        from_name: sender name passed to the template (default "Auth System")
        endpoint: REST endpoint (default: EmailJS send API)
        timeout: request timeout in seconds (default 10)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.service_id = self.config.get("service_id", "")
        self.template_id = self.config.get("template_id", "")
        self.public_key = self.config.get("public_key", "")
        self.private_key = self.config.get("private_key", "")
        self.from_name = self.config.get("from_name", "Auth System")
        self.endpoint = self.config.get("endpoint", DEFAULT_ENDPOINT)
        self.timeout = self.config.get("timeout", 10)

        for name in ("service_id", "template_id", "public_key"):
            if getattr(self, name).startswith("YOUR_"):
                warnings.warn(f"EmailJS {name} is a placeholder, email delivery will fail")

    def _payload(self, address: str, subject: str, body: str) -> Dict[str, Any]:
        payload = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": {
                "to_email": address,
                "to_name": address.split("@")[0],
                "from_name": self.from_name,
                "subject": subject,
                "message": body,
            },
        }
        if self.private_key:
            payload["accessToken"] = self.private_key
        return payload

    async def send(self, address: str, subject: str, body: str) -> None:
        """POST the message to EmailJS; raise DeliveryError unless it answers 200."""
        if not (self.service_id and self.template_id and self.public_key):
            raise DeliveryError("EmailJS is not configured")

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.endpoint, json=self._payload(address, subject, body)
                ) as resp:
                    text = await resp.text()
                    if resp.status != 200:
                        raise DeliveryError(f"EmailJS returned {resp.status}: {text[:200]}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DeliveryError(f"EmailJS request failed: {e}") from e

        logger.info(f"Email sent to {address}: {subject}")

"""Notifiers that never leave the process: the log and an in-memory outbox."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..errors import DeliveryError
from .base import Notifier

logger = logging.getLogger(__name__)


@dataclass
class SentMessage:
    address: str
    subject: str
    body: str


class LogNotifier(Notifier):
    """Writes each message to the log instead of delivering it."""

    async def send(self, address: str, subject: str, body: str) -> None:
        logger.info(f"Message for {address}: {subject} | {body}")


class MemoryNotifier(Notifier):
    """Keeps sent messages in ``outbox``. Set ``fail`` to simulate an outage."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, fail: bool = False):
        super().__init__(config)
        self.fail = fail
        self.outbox: List[SentMessage] = []

    async def send(self, address: str, subject: str, body: str) -> None:
        if self.fail:
            raise DeliveryError(f"Delivery to {address} failed")
        self.outbox.append(SentMessage(address, subject, body))

    def last_to(self, address: str) -> Optional[SentMessage]:
        """Most recent message sent to ``address``, if any."""
        for msg in reversed(self.outbox):
            if msg.address == address:
                return msg
        return None

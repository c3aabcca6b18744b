"""Base notifier interface.

A notifier delivers a message to an address outside the system (email, log,
test outbox). Delivery can fail independently of the auth state machine; the
service treats a failure as non-fatal.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class Notifier(ABC):
    """Abstract base class for message delivery channels."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize notifier with channel-specific configuration.

        Args:
            config: Settings for the channel (keys, endpoints, sender name)
        """
        self.config = config or {}

    @abstractmethod
    async def send(self, address: str, subject: str, body: str) -> None:
        """Deliver one message.

        Args:
            address: Recipient address
            subject: Message subject line
            body: Plain-text message body

        Raises:
            DeliveryError: the message could not be delivered.
        """
        pass

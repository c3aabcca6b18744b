"""Message delivery channels for one-time codes."""

from .base import Notifier
from .emailjs import EmailJSNotifier
from .local import LogNotifier, MemoryNotifier, SentMessage

__all__ = [
    "Notifier",
    "EmailJSNotifier",
    "LogNotifier",
    "MemoryNotifier",
    "SentMessage",
]

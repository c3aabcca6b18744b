"""Failure taxonomy for authentication operations.

Every operation failure is an ``AuthError`` subclass carrying a message that
can be shown to a person as-is. Callers decide how to display it; the service
only classifies.
"""

from typing import Optional


class AuthError(Exception):
    """Base class for all authentication failures."""

    message = "Authentication error"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or self.message
        self.field = field
        super().__init__(self.message)


class DuplicateEmail(AuthError):
    message = "Email already registered"


class DuplicateUsername(AuthError):
    message = "Username already taken"


class InvalidCredentials(AuthError):
    """Raised for an unknown email and for a wrong password alike."""

    message = "Invalid email or password"


class EmailNotVerified(AuthError):
    message = "Please verify your email before logging in"


class EmailNotRegistered(AuthError):
    message = "Email not registered"


class InvalidOrExpiredCode(AuthError):
    message = "Invalid or expired code"


class NotFound(AuthError):
    message = "User not found"


class NotAuthenticated(AuthError):
    message = "Not authenticated"


class DeliveryError(Exception):
    """A notifier could not deliver a message. Never fatal to an operation."""

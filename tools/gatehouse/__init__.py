"""
Gatehouse — Local authentication state machine.

Registration, email verification with one-time codes, password recovery,
profile changes and a single persisted session, all kept in local JSON
storage. There is no server: credentials are compared as stored.

Components:
    - StoragePort: get/set/delete over named JSON tables (memory or files)
    - UserStore: user records with case-insensitive unique email/username
    - CodeStore: six-digit codes per (email, purpose) with lazy expiry
    - SessionManager: zero or one redacted user, restored on startup
    - Notifier: delivers codes (EmailJS, log, in-memory outbox)
    - AuthService: the operations, wiring all of the above

Usage:
    from gatehouse import AuthService, MemoryStorage
    from gatehouse.notifiers import MemoryNotifier

    auth = AuthService(MemoryStorage(), MemoryNotifier())
    auth.restore()
    result = await auth.signup("a@x.com", "pw123456", "alice", "Alice")
"""

__version__ = "0.1.0"

from .errors import (
    AuthError,
    DeliveryError,
    DuplicateEmail,
    DuplicateUsername,
    EmailNotRegistered,
    EmailNotVerified,
    InvalidCredentials,
    InvalidOrExpiredCode,
    NotAuthenticated,
    NotFound,
)
from .models import CodePurpose, OneTimeCode, PublicUser, UserRecord
from .service import AuthService, CodeDispatch, SignupResult
from .session import SessionManager, SessionSnapshot
from .storage import JsonFileStorage, MemoryStorage, StoragePort

__all__ = [
    "AuthService",
    "CodeDispatch",
    "SignupResult",
    "SessionManager",
    "SessionSnapshot",
    "StoragePort",
    "MemoryStorage",
    "JsonFileStorage",
    "CodePurpose",
    "OneTimeCode",
    "PublicUser",
    "UserRecord",
    "AuthError",
    "DeliveryError",
    "DuplicateEmail",
    "DuplicateUsername",
    "EmailNotRegistered",
    "EmailNotVerified",
    "InvalidCredentials",
    "InvalidOrExpiredCode",
    "NotAuthenticated",
    "NotFound",
]

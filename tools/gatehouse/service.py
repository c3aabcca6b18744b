"""Auth service: the authentication state machine.

Per user the derived states are unregistered -> unverified -> verified;
orthogonally the process is anonymous or holds one authenticated session.

    signup            unregistered -> unverified, verification code sent
    verify_email      unverified -> verified (code consumed)
    login             verified + anonymous -> authenticated
    logout            authenticated -> anonymous
    delete_account    authenticated user -> unregistered, anonymous

Operations that send a code never fail because the notifier failed. The
returned ``CodeDispatch`` says whether delivery worked and, when it did not,
carries the code so the caller can show it another way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from .codes import CodeStore
from .errors import (
    EmailNotRegistered,
    EmailNotVerified,
    InvalidCredentials,
    InvalidOrExpiredCode,
    NotAuthenticated,
    NotFound,
)
from .events import log_event
from .models import DEFAULT_PROFILE_PICTURE, CodePurpose, PublicUser, utcnow
from .notifiers.base import Notifier
from .session import SessionManager, SessionSnapshot
from .storage import StoragePort
from .users import UserStore

logger = logging.getLogger(__name__)

PROTECTED_PROFILE_FIELDS = frozenset({"id", "email", "is_verified"})


@dataclass
class CodeDispatch:
    """Outcome of issuing a code and trying to deliver it.

    Attributes:
        email: Address the code was issued for.
        purpose: Which code table it lives in.
        delivered: Whether the notifier accepted the message.
        fallback_code: The code itself when delivery failed, else None.
    """

    email: str
    purpose: CodePurpose
    delivered: bool
    fallback_code: Optional[str] = None


@dataclass
class SignupResult:
    user: PublicUser
    dispatch: CodeDispatch


class AuthService:
    """Orchestrates the user store, code store, notifier and session.

    Args:
        storage: Storage port shared by all stores.
        notifier: Channel used to deliver one-time codes.
        app_name: Product name used in message subjects.
        code_ttl_minutes: Per-purpose code lifetime overrides.
        clock: Current-time source, shared with the stores.
        event_log: JSONL audit file, or None to disable auditing.
        default_profile_picture: Picture for users who give none.
    """

    def __init__(
        self,
        storage: StoragePort,
        notifier: Notifier,
        app_name: str = "Auth System",
        code_ttl_minutes: Optional[dict[CodePurpose, int]] = None,
        clock: Callable[[], datetime] = utcnow,
        event_log: Optional[Path] = None,
        default_profile_picture: str = DEFAULT_PROFILE_PICTURE,
    ) -> None:
        self.notifier = notifier
        self.app_name = app_name
        self.event_log = event_log
        self.users = UserStore(storage, clock=clock, default_profile_picture=default_profile_picture)
        self.codes = CodeStore(storage, ttl_minutes=code_ttl_minutes, clock=clock)
        self.session = SessionManager(storage)

    # ── session surface ──────────────────────────────────────────────────

    def restore(self) -> Optional[PublicUser]:
        return self.session.restore()

    def snapshot(self) -> SessionSnapshot:
        return self.session.snapshot()

    @property
    def current_user(self) -> Optional[PublicUser]:
        return self.session.user

    def _require_session(self) -> PublicUser:
        user = self.session.user
        if user is None:
            raise NotAuthenticated()
        return user

    # ── code delivery ────────────────────────────────────────────────────

    async def _dispatch(
        self, email: str, purpose: CodePurpose, subject: str, body: str
    ) -> CodeDispatch:
        """Issue a code for (email, purpose) and try to deliver it.

        ``body`` is a template with a ``{code}`` placeholder.
        """
        code = self.codes.issue(email, purpose)
        log_event(self.event_log, "code_issued", email=email, purpose=purpose.value)
        try:
            await self.notifier.send(
                email, f"{subject} - {self.app_name}", body.format(code=code)
            )
        except Exception as e:
            logger.warning(f"Could not deliver {purpose.value} code to {email}: {e}")
            log_event(
                self.event_log,
                "code_delivery_failed",
                email=email,
                purpose=purpose.value,
                error=str(e),
            )
            return CodeDispatch(email, purpose, delivered=False, fallback_code=code)
        return CodeDispatch(email, purpose, delivered=True)

    # ── operations ───────────────────────────────────────────────────────

    async def signup(
        self,
        email: str,
        password: str,
        username: str,
        name: str,
        date_of_birth: Any = None,
        occupation: Optional[str] = None,
        profile_picture: Optional[str] = None,
    ) -> SignupResult:
        """Register an unverified user and send a verification code.

        Raises:
            DuplicateEmail, DuplicateUsername
        """
        record = self.users.new_record(
            email,
            password,
            username,
            name,
            date_of_birth=date_of_birth,
            occupation=occupation,
            profile_picture=profile_picture,
        )
        self.users.create(record)
        log_event(self.event_log, "signup", user_id=record.id, username=record.username)

        dispatch = await self._dispatch(
            record.email,
            CodePurpose.VERIFICATION,
            "Verify Your Email",
            f"Welcome to {self.app_name}! Your verification code is: {{code}}",
        )
        return SignupResult(user=record.redacted(), dispatch=dispatch)

    async def login(self, email: str, password: str) -> PublicUser:
        """Authenticate and make the user the active session.

        Raises:
            InvalidCredentials: unknown email or wrong password.
            EmailNotVerified: right password, email not yet verified.
        """
        user = self.users.find_by_email(email)
        if user is None or user.password != password:
            logger.info(f"Login rejected for {email}")
            log_event(self.event_log, "login_failed", email=email)
            raise InvalidCredentials()
        if not user.is_verified:
            log_event(self.event_log, "login_failed", email=email, reason="unverified")
            raise EmailNotVerified()

        public = self.session.set(user.redacted())
        logger.info(f"Login: {user.id} ({user.username})")
        log_event(self.event_log, "login_succeeded", user_id=user.id)
        return public

    def logout(self) -> None:
        user = self.session.user
        self.session.clear()
        if user is not None:
            logger.info(f"Logout: {user.id}")
            log_event(self.event_log, "logout", user_id=user.id)

    async def verify_email(self, email: str, code: str) -> None:
        """Mark the user verified if ``code`` is the live verification code.

        Raises:
            InvalidOrExpiredCode, NotFound
        """
        if not self.codes.validate(email, CodePurpose.VERIFICATION, code):
            raise InvalidOrExpiredCode("Invalid or expired verification code")

        user = self.users.find_by_email(email)
        if user is None:
            raise NotFound()

        updated = self.users.update(user.id, {"is_verified": True})
        self.codes.invalidate(email, CodePurpose.VERIFICATION)

        current = self.session.user
        if current is not None and current.id == user.id:
            self.session.set(updated.redacted())

        logger.info(f"Email verified: {user.id}")
        log_event(self.event_log, "email_verified", user_id=user.id)

    async def send_verification_code(self, email: str) -> CodeDispatch:
        """Issue and send a new verification code to a registered address.

        Raises:
            EmailNotRegistered
        """
        user = self.users.find_by_email(email)
        if user is None:
            raise EmailNotRegistered()
        return await self._dispatch(
            user.email,
            CodePurpose.VERIFICATION,
            "Your Verification Code",
            "Your verification code is: {code}",
        )

    async def resend_verification_code(self) -> Optional[CodeDispatch]:
        """Send a new verification code to the session user; no-op when anonymous."""
        user = self.session.user
        if user is None:
            return None
        return await self._dispatch(
            user.email,
            CodePurpose.VERIFICATION,
            "Your New Verification Code",
            "Your verification code is: {code}",
        )

    async def request_password_reset(self, email: str) -> CodeDispatch:
        """Issue and send a password reset code.

        Raises:
            EmailNotRegistered
        """
        user = self.users.find_by_email(email)
        if user is None:
            raise EmailNotRegistered()
        return await self._dispatch(
            user.email,
            CodePurpose.PASSWORD_RESET,
            "Password Reset Code",
            "Your password reset code is: {code}",
        )

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        """Replace the password if ``code`` is the live reset code.

        Raises:
            InvalidOrExpiredCode, NotFound
        """
        if not self.codes.validate(email, CodePurpose.PASSWORD_RESET, code):
            raise InvalidOrExpiredCode("Invalid or expired reset code")

        user = self.users.find_by_email(email)
        if user is None:
            raise NotFound()

        self.users.update(user.id, {"password": new_password})
        self.codes.invalidate(email, CodePurpose.PASSWORD_RESET)
        logger.info(f"Password reset: {user.id}")
        log_event(self.event_log, "password_reset", user_id=user.id)

    async def update_profile(self, changes: dict[str, Any]) -> PublicUser:
        """Apply profile changes for the session user and refresh the session.

        Raises:
            NotAuthenticated, NotFound, DuplicateUsername
            ValueError: ``changes`` touches id, email or the verified flag.
        """
        current = self._require_session()
        protected = PROTECTED_PROFILE_FIELDS & set(changes)
        if protected:
            raise ValueError(f"Fields cannot be changed: {', '.join(sorted(protected))}")

        updated = self.users.update(current.id, changes)
        public = self.session.set(updated.redacted())
        logger.info(f"Profile updated: {current.id}")
        log_event(
            self.event_log,
            "profile_updated",
            user_id=current.id,
            fields=sorted(f for f in changes if f != "password"),
        )
        return public

    async def delete_account(self) -> None:
        """Delete the session user's record and end the session.

        Raises:
            NotAuthenticated
        """
        current = self._require_session()
        self.users.delete(current.id)
        self.session.clear()
        logger.info(f"Account deleted: {current.id}")
        log_event(self.event_log, "account_deleted", user_id=current.id)

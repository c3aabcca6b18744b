"""One-time code store for email verification and password reset.

Each purpose has its own table keyed by normalised email, so issuing a code
replaces whatever code that address already had for that purpose. Expiry is
checked when a code is validated; stale entries are never swept.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from .models import (
    CODE_TABLE_SCHEMA,
    CodePurpose,
    OneTimeCode,
    normalize_email,
    utcnow,
)
from .storage import (
    RESET_CODES_KEY,
    VERIFICATION_CODES_KEY,
    StoragePort,
    load_table,
)

logger = logging.getLogger(__name__)

CODE_LENGTH = 6

DEFAULT_TTL_MINUTES = {
    CodePurpose.VERIFICATION: 30,
    CodePurpose.PASSWORD_RESET: 15,
}

_TABLE_KEYS = {
    CodePurpose.VERIFICATION: VERIFICATION_CODES_KEY,
    CodePurpose.PASSWORD_RESET: RESET_CODES_KEY,
}


def generate_code() -> str:
    """Return a uniformly random six-digit code, leading zeros kept."""
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


class CodeStore:
    """Issues, validates and invalidates one-time codes.

    Args:
        storage: Backing storage for the two code tables.
        ttl_minutes: Optional per-purpose lifetime overrides.
        clock: Returns the current time (timezone-aware UTC).
    """

    def __init__(
        self,
        storage: StoragePort,
        ttl_minutes: Optional[dict[CodePurpose, int]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._storage = storage
        self._ttl = {**DEFAULT_TTL_MINUTES, **(ttl_minutes or {})}
        self._clock = clock

    def _load(self, purpose: CodePurpose) -> dict:
        return load_table(self._storage, _TABLE_KEYS[purpose], CODE_TABLE_SCHEMA)

    def _save(self, purpose: CodePurpose, table: dict) -> None:
        self._storage.set(_TABLE_KEYS[purpose], table)

    def ttl(self, purpose: CodePurpose) -> timedelta:
        return timedelta(minutes=self._ttl[purpose])

    def issue(self, email: str, purpose: CodePurpose) -> str:
        """Create a fresh code for (email, purpose), replacing any prior one."""
        key = normalize_email(email)
        now = self._clock()
        entry = OneTimeCode(
            email=key,
            code=generate_code(),
            purpose=purpose,
            issued_at=now,
            expires_at=now + self.ttl(purpose),
        )
        table = self._load(purpose)
        table[key] = entry.to_dict()
        self._save(purpose, table)
        logger.debug(f"Issued {purpose.value} code for {key}, expires {entry.expires_at}")
        return entry.code

    def get(self, email: str, purpose: CodePurpose) -> Optional[OneTimeCode]:
        """Return the stored code for (email, purpose), expired or not."""
        key = normalize_email(email)
        data = self._load(purpose).get(key)
        if data is None:
            return None
        try:
            return OneTimeCode.from_dict(key, purpose, data)
        except ValueError as e:
            logger.warning(f"Ignoring malformed {purpose.value} code for {key}: {e}")
            return None

    def validate(self, email: str, purpose: CodePurpose, candidate: str) -> bool:
        """True iff a live code exists for the pair and equals ``candidate`` exactly."""
        entry = self.get(email, purpose)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            return False
        return entry.code == candidate

    def invalidate(self, email: str, purpose: CodePurpose) -> None:
        """Drop the code for (email, purpose) so it cannot be used again."""
        key = normalize_email(email)
        table = self._load(purpose)
        if table.pop(key, None) is not None:
            self._save(purpose, table)

"""Session manager: at most one authenticated user per process.

The active session is a redacted user record persisted under
``current_user`` so it survives a restart. Anything unreadable found there on
``restore()`` is cleared and treated as "no session".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import jsonschema

from .models import PUBLIC_USER_SCHEMA, PublicUser, UserRecord
from .storage import CURRENT_USER_KEY, CorruptValue, StoragePort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session for rendering."""

    user: Optional[PublicUser]
    is_loading: bool

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class SessionManager:
    def __init__(self, storage: StoragePort) -> None:
        self._storage = storage
        self._user: Optional[PublicUser] = None
        self._loading = True

    @property
    def user(self) -> Optional[PublicUser]:
        return self._user

    @property
    def is_loading(self) -> bool:
        return self._loading

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(user=self._user, is_loading=self._loading)

    def restore(self) -> Optional[PublicUser]:
        """Load the persisted session, if any. Corrupt data is discarded."""
        self._user = None
        try:
            data = self._storage.get(CURRENT_USER_KEY)
            if data is not None:
                jsonschema.validate(data, PUBLIC_USER_SCHEMA)
                self._user = PublicUser.from_dict(data)
        except (CorruptValue, jsonschema.ValidationError, ValueError) as e:
            logger.error(f"Failed to parse stored session, clearing it: {e}")
            self._storage.delete(CURRENT_USER_KEY)
        self._loading = False
        return self._user

    def set(self, user: PublicUser) -> PublicUser:
        """Make ``user`` the active session, replacing any previous one."""
        if isinstance(user, UserRecord):
            user = user.redacted()
        self._user = user
        self._loading = False
        self._storage.set(CURRENT_USER_KEY, user.to_dict())
        return user

    def clear(self) -> None:
        self._user = None
        self._storage.delete(CURRENT_USER_KEY)

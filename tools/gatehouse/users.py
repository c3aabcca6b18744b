"""User store over the ``users`` table.

Every mutation is a whole-table read-modify-write: load the table, change it
in memory, write the whole table back. Two writers racing on the same table
can lose an update (last write wins).
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

import jsonschema

from .errors import DuplicateEmail, DuplicateUsername, NotFound
from .models import (
    DEFAULT_PROFILE_PICTURE,
    USER_FIELDS,
    USER_RECORD_SCHEMA,
    USER_TABLE_SCHEMA,
    UserRecord,
    coerce_date,
    coerce_datetime,
    normalize_email,
    utcnow,
)
from .storage import USERS_KEY, StoragePort, load_table

logger = logging.getLogger(__name__)


def _same(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


class UserStore:
    """Case-insensitive unique emails and usernames over a JSON user table.

    Args:
        storage: Backing storage.
        clock: Source of join timestamps.
        default_profile_picture: Used when a new user gives no picture.
    """

    def __init__(
        self,
        storage: StoragePort,
        clock: Callable[[], datetime] = utcnow,
        default_profile_picture: str = DEFAULT_PROFILE_PICTURE,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._default_picture = default_profile_picture

    def _next_id(self) -> str:
        return str(uuid.uuid4())

    def _load(self) -> dict[str, UserRecord]:
        table = load_table(self._storage, USERS_KEY, USER_TABLE_SCHEMA)
        try:
            return {user_id: UserRecord.from_dict(row) for user_id, row in table.items()}
        except ValueError as e:
            logger.warning(f"User table has unreadable records, treating as empty: {e}")
            return {}

    def _save(self, users: dict[str, UserRecord]) -> None:
        self._storage.set(USERS_KEY, {user_id: user.to_dict() for user_id, user in users.items()})

    @staticmethod
    def _check_unique(
        users: Iterable[UserRecord],
        email: Optional[str],
        username: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> None:
        for other in users:
            if other.id == exclude_id:
                continue
            if email is not None and _same(other.email, email):
                raise DuplicateEmail(field="email")
            if username is not None and _same(other.username, username):
                raise DuplicateUsername(field="username")

    def new_record(
        self,
        email: str,
        password: str,
        username: str,
        name: str,
        date_of_birth: Any = None,
        occupation: Optional[str] = None,
        profile_picture: Optional[str] = None,
    ) -> UserRecord:
        """Build an unverified record with a fresh id; does not persist it."""
        return UserRecord(
            id=self._next_id(),
            email=email.strip(),
            username=username.strip(),
            name=name,
            profile_picture=profile_picture or self._default_picture,
            date_joined=self._clock(),
            date_of_birth=coerce_date(date_of_birth),
            occupation=occupation or None,
            is_verified=False,
            password=password,
        )

    def create(self, record: UserRecord) -> UserRecord:
        """Persist a new record.

        Raises:
            DuplicateEmail: email collides case-insensitively with another user.
            DuplicateUsername: username collides case-insensitively.
        """
        users = self._load()
        self._check_unique(users.values(), record.email, record.username)
        users[record.id] = record
        self._save(users)
        logger.info(f"User created: {record.id} ({record.username})")
        return record

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        wanted = normalize_email(email)
        for user in self._load().values():
            if normalize_email(user.email) == wanted:
                return user
        return None

    def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        return self._load().get(user_id)

    def list_users(self) -> list[UserRecord]:
        """Return all users ordered by join time."""
        return sorted(self._load().values(), key=lambda u: u.date_joined)

    def update(self, user_id: str, changes: dict[str, Any]) -> UserRecord:
        """Merge ``changes`` into the record and persist it.

        Raises:
            NotFound: no record with ``user_id``.
            DuplicateEmail / DuplicateUsername: a changed email or username
                belongs to a different user.
            ValueError: ``changes`` names an unknown field or the id, or a
                value does not fit the stored record.
        """
        unknown = set(changes) - USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {', '.join(sorted(unknown))}")
        if "id" in changes:
            raise ValueError("User id cannot be changed")

        users = self._load()
        current = users.get(user_id)
        if current is None:
            raise NotFound()

        changes = dict(changes)
        for field in ("email", "username"):
            if isinstance(changes.get(field), str):
                changes[field] = changes[field].strip()
        if "date_of_birth" in changes:
            changes["date_of_birth"] = coerce_date(changes["date_of_birth"])
        if "date_joined" in changes:
            changes["date_joined"] = coerce_datetime(changes["date_joined"])

        updated = dataclasses.replace(current, **changes)
        try:
            jsonschema.validate(updated.to_dict(), USER_RECORD_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ValueError(f"Invalid user field value: {e.message}") from e

        new_email = changes.get("email")
        new_username = changes.get("username")
        self._check_unique(
            users.values(),
            new_email if new_email is not None and new_email != current.email else None,
            new_username if new_username is not None and new_username != current.username else None,
            exclude_id=user_id,
        )

        users[user_id] = updated
        self._save(users)
        logger.debug(f"User updated: {user_id} fields={sorted(changes)}")
        return updated

    def delete(self, user_id: str) -> bool:
        """Remove a user by id. Returns True if a record was removed."""
        users = self._load()
        if users.pop(user_id, None) is None:
            return False
        self._save(users)
        logger.info(f"User deleted: {user_id}")
        return True

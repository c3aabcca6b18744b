"""Records held by the auth stores and their JSON form.

Persisted tables are plain JSON. Timestamps are written with ``isoformat()``
and turned back into ``datetime``/``date`` values on load. The schemas at the
bottom describe what a well-formed table looks like; anything else read back
from storage is treated as corrupt.
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, fields
from datetime import date, datetime, timezone
from typing import Any, Optional

DEFAULT_PROFILE_PICTURE = "https://via.placeholder.com/150"


class CodePurpose(str, enum.Enum):
    """Namespaces for one-time codes. Each purpose has its own table."""

    VERIFICATION = "verification"
    PASSWORD_RESET = "password_reset"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _parse_datetime(value: str) -> datetime:
    """Parse an ISO timestamp; one without an offset is taken as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    if "T" in value or " " in value:
        return datetime.fromisoformat(value).date()
    return date.fromisoformat(value)


def coerce_datetime(value: Any) -> datetime:
    """Accept a ``datetime`` or ISO string for a timestamp field."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        return _parse_datetime(value)
    raise ValueError(f"Not a timestamp: {value!r}")


def coerce_date(value: Any) -> Optional[date]:
    """Accept a ``date``, ``datetime`` or ISO string for a birth date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return _parse_date(str(value))


@dataclass
class PublicUser:
    """Redacted projection of a user record. Never carries the password."""

    id: str
    email: str
    username: str
    name: str
    profile_picture: str
    date_joined: datetime
    date_of_birth: Optional[date] = None
    occupation: Optional[str] = None
    is_verified: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["date_joined"] = self.date_joined.isoformat()
        data["date_of_birth"] = (
            self.date_of_birth.isoformat() if self.date_of_birth else None
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PublicUser":
        return cls(
            id=data["id"],
            email=data["email"],
            username=data["username"],
            name=data["name"],
            profile_picture=data.get("profile_picture") or DEFAULT_PROFILE_PICTURE,
            date_joined=_parse_datetime(data["date_joined"]),
            date_of_birth=_parse_date(data.get("date_of_birth")),
            occupation=data.get("occupation"),
            is_verified=bool(data.get("is_verified", False)),
        )


@dataclass
class UserRecord(PublicUser):
    """Full user record as owned by the user store, password included."""

    password: str = ""

    def redacted(self) -> PublicUser:
        public = {f.name: getattr(self, f.name) for f in fields(PublicUser)}
        return PublicUser(**public)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserRecord":
        public = PublicUser.from_dict(data)
        return cls(**asdict(public), password=data["password"])


# Fields an update may touch, by name.
USER_FIELDS = frozenset(f.name for f in fields(UserRecord))


@dataclass
class OneTimeCode:
    """A six-digit code bound to an email address and a purpose."""

    email: str
    code: str
    purpose: CodePurpose
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(
        cls, email: str, purpose: CodePurpose, data: dict[str, Any]
    ) -> "OneTimeCode":
        expires_at = _parse_datetime(data["expires_at"])
        issued = data.get("issued_at")
        return cls(
            email=email,
            code=data["code"],
            purpose=purpose,
            issued_at=_parse_datetime(issued) if issued else expires_at,
            expires_at=expires_at,
        )


_NULLABLE_STRING = {"type": ["string", "null"]}

PUBLIC_USER_SCHEMA = {
    "type": "object",
    "required": ["id", "email", "username", "name", "date_joined"],
    "properties": {
        "id": {"type": "string"},
        "email": {"type": "string"},
        "username": {"type": "string"},
        "name": {"type": "string"},
        "profile_picture": _NULLABLE_STRING,
        "date_joined": {"type": "string"},
        "date_of_birth": _NULLABLE_STRING,
        "occupation": _NULLABLE_STRING,
        "is_verified": {"type": "boolean"},
    },
}

USER_RECORD_SCHEMA = {
    **PUBLIC_USER_SCHEMA,
    "required": PUBLIC_USER_SCHEMA["required"] + ["password"],
    "properties": {
        **PUBLIC_USER_SCHEMA["properties"],
        "password": {"type": "string"},
    },
}

USER_TABLE_SCHEMA = {
    "type": "object",
    "additionalProperties": USER_RECORD_SCHEMA,
}

CODE_TABLE_SCHEMA = {
    "type": "object",
    "additionalProperties": {
        "type": "object",
        "required": ["code", "expires_at"],
        "properties": {
            "code": {"type": "string"},
            "issued_at": {"type": "string"},
            "expires_at": {"type": "string"},
        },
    },
}

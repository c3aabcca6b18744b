"""Storage port for the auth tables.

The stores never touch files directly. They read and write whole JSON values
under a handful of fixed table keys through a ``StoragePort``:

    users               id -> full user record (password included)
    current_user        redacted user record, or absent
    verification_codes  email -> {code, issued_at, expires_at}
    reset_codes         email -> {code, issued_at, expires_at}

``MemoryStorage`` is the in-process fake used by tests; ``JsonFileStorage``
keeps one JSON file per table so state survives a restart.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import jsonschema

logger = logging.getLogger(__name__)

USERS_KEY = "users"
CURRENT_USER_KEY = "current_user"
VERIFICATION_CODES_KEY = "verification_codes"
RESET_CODES_KEY = "reset_codes"


class CorruptValue(Exception):
    """A stored value exists but cannot be decoded."""


class StoragePort(ABC):
    """Whole-value key/value storage for JSON-compatible data."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if nothing is stored.

        Raises:
            CorruptValue: something is stored but it is not valid JSON.
        """

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Replace the stored value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the value. No error if it is already absent."""


class MemoryStorage(StoragePort):
    """In-memory storage that serialises values like a durable store would."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptValue(f"Unreadable value for {key!r}: {e}") from e

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def set_raw(self, key: str, raw: str) -> None:
        """Store an already-encoded string verbatim."""
        self._data[key] = raw


class JsonFileStorage(StoragePort):
    """One ``<key>.json`` file per table under ``directory``."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptValue(f"Unreadable table {path}: {e}") from e

    def set(self, key: str, value: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(json.dumps(value, indent=2), encoding="utf-8")

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def load_table(storage: StoragePort, key: str, schema: dict[str, Any]) -> dict[str, Any]:
    """Read a mapping table, falling back to empty when it is absent or corrupt."""
    try:
        value = storage.get(key)
    except CorruptValue as e:
        logger.warning(f"{e}, treating as empty")
        return {}
    if value is None:
        return {}
    try:
        jsonschema.validate(value, schema)
    except jsonschema.ValidationError as e:
        logger.warning(f"Table {key!r} failed validation, treating as empty: {e.message}")
        return {}
    return value

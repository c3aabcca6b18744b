"""Configuration loading and service wiring.

Config is a JSON file merged over ``DEFAULT_CONFIG``; sections are merged one
level deep so a file only needs the keys it changes. Example::

    {
      "app_name": "Auth System",
      "storage": {"backend": "file", "path": ".gatehouse/data"},
      "codes": {"verification_ttl_minutes": 30, "reset_ttl_minutes": 15},
      "notifier": {
        "type": "emailjs",
        "service_id": "service_xxx",
        "template_id": "template_xxx",
        "public_key": "xxxx"
      },
      "events": {"path": ".gatehouse/auth-events.jsonl"}
    }
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Optional

from .models import DEFAULT_PROFILE_PICTURE, CodePurpose
from .notifiers import EmailJSNotifier, LogNotifier, MemoryNotifier, Notifier
from .service import AuthService
from .storage import JsonFileStorage, MemoryStorage, StoragePort

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = ".gatehouse/config.json"

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "Auth System",
    "default_profile_picture": DEFAULT_PROFILE_PICTURE,
    "storage": {"backend": "file", "path": ".gatehouse/data"},
    "codes": {"verification_ttl_minutes": 30, "reset_ttl_minutes": 15},
    "notifier": {"type": "log"},
    "events": {"path": ".gatehouse/auth-events.jsonl"},
}


def merge_config(overrides: dict[str, Any]) -> dict[str, Any]:
    config = copy.deepcopy(DEFAULT_CONFIG)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    return config


def load_config(config_path: Optional[str] = None) -> dict[str, Any]:
    """Load configuration from a JSON file; a missing file yields defaults."""
    path = Path(config_path or DEFAULT_CONFIG_PATH)
    if not path.exists():
        logger.debug(f"No config at {path}, using defaults")
        return merge_config({})

    with open(path) as f:
        return merge_config(json.load(f))


def build_storage(config: dict[str, Any]) -> StoragePort:
    storage_config = config.get("storage", {})
    backend = storage_config.get("backend", "file")
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return JsonFileStorage(storage_config.get("path", ".gatehouse/data"))
    raise ValueError(f"Unknown storage backend: {backend}")


def build_notifier(config: dict[str, Any]) -> Notifier:
    notifier_config = dict(config.get("notifier", {}))
    notifier_config.setdefault("from_name", config.get("app_name", "Auth System"))
    kind = notifier_config.get("type", "log")
    if kind == "emailjs":
        return EmailJSNotifier(notifier_config)
    if kind == "log":
        return LogNotifier(notifier_config)
    if kind == "memory":
        return MemoryNotifier(notifier_config)
    raise ValueError(f"Unknown notifier type: {kind}")


def build_service(config: dict[str, Any]) -> AuthService:
    """Instantiate an AuthService from a merged configuration dict."""
    codes_config = config.get("codes", {})
    ttl = {
        CodePurpose.VERIFICATION: codes_config.get("verification_ttl_minutes", 30),
        CodePurpose.PASSWORD_RESET: codes_config.get("reset_ttl_minutes", 15),
    }
    event_path = config.get("events", {}).get("path")

    service = AuthService(
        storage=build_storage(config),
        notifier=build_notifier(config),
        app_name=config.get("app_name", "Auth System"),
        code_ttl_minutes=ttl,
        event_log=Path(event_path) if event_path else None,
        default_profile_picture=config.get("default_profile_picture", DEFAULT_PROFILE_PICTURE),
    )
    logger.debug(f"AuthService built with {type(service.notifier).__name__}")
    return service

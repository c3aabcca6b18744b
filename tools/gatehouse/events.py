"""Append-only JSONL audit trail of auth events.

One JSON object per line: ``timestamp``, ``event_type`` and whatever details
the caller passes. Codes and passwords are never passed in.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


def log_event(log_path: Optional[Path], event_type: str, **details: Any) -> None:
    if log_path is None:
        return
    try:
        file_path = Path(log_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            **details,
        }
        with file_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=True) + "\n")
    except OSError as e:
        logger.debug(f"Could not write auth event {event_type}: {e}")

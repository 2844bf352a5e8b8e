from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

logger = logging.getLogger("teeds.events")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"teeds.{name}")


def log_event(
    category: str,
    action: str,
    outcome: str,
    reason: str | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> None:
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "category": category,
        "action": action,
        "outcome": outcome,
        "reason": reason,
        "metadata": dict(metadata) if metadata else {},
    }
    logger.info(json.dumps(entry, default=str))

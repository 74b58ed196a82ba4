"""
app/logging_utils.py

Structured log lines for ranking batch and run milestones.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import date, datetime
from typing import Any


def _jsonable(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit ``{"event": ..., **fields}`` as one sorted JSON line.

    Fields that are ``None`` are left out.
    """

    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **{key: value for key, value in fields.items() if value is not None}}
    logger.log(level, json.dumps(payload, default=_jsonable, sort_keys=True))

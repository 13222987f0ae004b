"""Small structured logging helper.

Log lines are single JSON objects so they can be shipped to any collector.
Sensitive keys are masked before serialization.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from dutylog.core.request_context import get_principal_id, get_request_id

REDACTED_KEYS = frozenset(
    {
        "password",
        "token",
        "access_token",
        "refresh_token",
        "authorization",
    }
)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: "[REDACTED]" if str(k).lower() in REDACTED_KEYS else _redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list | tuple):
        return [_redact(v) for v in value]
    return value


def log_json(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """Emit a single JSON log line with request and principal correlation."""

    payload: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "event": event,
    }
    request_id = get_request_id()
    if request_id:
        payload["request_id"] = request_id
    principal_id = get_principal_id()
    if principal_id:
        payload["principal_id"] = principal_id

    payload.update(_redact(fields))
    logger.log(level, json.dumps(payload, default=str))

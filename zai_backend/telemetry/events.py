"""
Structured JSON event logging with size caps and secret redaction.

Every event is a single JSON line so log aggregation can filter on the
`event` field. Bearer tokens, signed assertions and private keys must go
through redact_secret() before they reach a log line.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Optional


def truncate_for_log(s: str, cap: int) -> str:
    """Safely truncate a string to a maximum length `cap`.

    Non-string values are converted with str() first.
    """
    try:
        if not isinstance(s, str):
            s = str(s)
        return s if len(s) <= cap else s[:cap]
    except Exception:
        try:
            return str(s)
        except Exception:
            return ""


def redact_secret(value: Optional[str], keep: int = 6) -> Optional[str]:
    """Shorten a secret to a recognizable prefix, e.g. 'ya29.a…(212 chars)'."""
    if value is None:
        return None
    s = str(value)
    if len(s) <= keep:
        return "<redacted>"
    return f"{s[:keep]}…({len(s)} chars)"


def log_event(
    logger,
    event_name: str,
    *,
    level: str = "info",
    caps: Optional[Dict[str, int]] = None,
    **fields: Any,
) -> None:
    """Emit a single JSON event line via the provided logger.

    - level: logger method name (info, warning, error, debug)
    - caps: optional mapping of field names -> max length (applied to str values)
    """
    payload: Dict[str, Any] = {"event": event_name}
    payload.update(fields or {})

    if caps:
        for key, limit in caps.items():
            if key in payload and payload[key] is not None:
                payload[key] = truncate_for_log(payload[key], int(limit))

    emit = getattr(logger, level, None) or logger.info
    try:
        emit(json.dumps(payload, ensure_ascii=False))
    except Exception:
        # Fall back to best-effort string logging if JSON serialization fails
        try:
            emit(str(payload))
        except Exception:
            pass


__all__ = ["truncate_for_log", "redact_secret", "log_event"]

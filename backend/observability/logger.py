"""
JSONL event logger.

- One JSON object per line on stdout
- No buffering, no batching
- Credential material never reaches the sink: any key containing
  "api_key" is masked, at any nesting depth
"""

from __future__ import annotations

import json
import sys
from typing import Any, Callable, Mapping

REDACTED = "***"
_SENSITIVE_MARKER = "api_key"


# ------------------------------------------------------------------
# Output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print


def redact(value: Any) -> Any:
    """Return a copy of value with credential-bearing fields masked."""
    if isinstance(value, Mapping):
        return {
            k: (REDACTED if _SENSITIVE_MARKER in str(k).lower() and v is not None else redact(v))
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event.

    The caller supplies a fully-formed dict (ts_ms, event_type, ...).
    Never raises: unserializable events degrade to a
    LOGGER_SERIALIZATION_ERROR record.
    """
    safe = redact(event)
    try:
        line = json.dumps(safe, ensure_ascii=False, separators=(",", ":"), default=_default)
    except (TypeError, ValueError) as e:
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_type": str(event.get("event_type")),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)


def _default(obj: Any) -> Any:
    # str-valued enums serialize by value
    value = getattr(obj, "value", None)
    if isinstance(value, (str, int)):
        return value
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")

"""
JSON helpers for the JSON-text columns (item stats, bartender memories).

Timestamps are written as JavaScript-style ISO strings with millisecond
precision and a trailing Z, which is what the browser client produces and
expects.
"""
from typing import Any
from datetime import datetime, timezone
import json
import re

from pixel_tavern.protocol import MemoryType


ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{3})?Z$")

DEFAULT_IMPORTANCE = 3

_MEMORY_TYPES = {t.value for t in MemoryType}


def parse_iso_timestamp(value: str) -> datetime:
    """Parse 2024-01-02T03:04:05.678Z (or without millis) into an aware UTC datetime."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def format_iso_timestamp(value: datetime) -> str:
    """Render a datetime as YYYY-MM-DDTHH:MM:SS.mmmZ; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _revive_dates(value: Any) -> Any:
    if isinstance(value, str) and ISO_DATE_PATTERN.match(value):
        try:
            return parse_iso_timestamp(value)
        except ValueError:
            # Shaped like a date but not one (e.g. Feb 30): keep the text
            return value
    if isinstance(value, list):
        return [_revive_dates(v) for v in value]
    if isinstance(value, dict):
        return {k: _revive_dates(v) for k, v in value.items()}
    return value


def safe_json_parse(value: Any) -> Any:
    """
    Decode JSON text, turning ISO-8601 UTC strings into datetimes.

    - Falsy input gives []
    - Non-string input is returned unchanged (already decoded)
    - Anything that does not decode to a list or dict gives []
    """
    if not value:
        return []

    if not isinstance(value, str):
        return value

    try:
        parsed = json.loads(value)
    except (TypeError, ValueError) as e:
        print(f"Error parsing JSON: {e}")
        return []

    if isinstance(parsed, (list, dict)):
        return _revive_dates(parsed)

    return []


def _encode_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_iso_timestamp(value)
    if isinstance(value, MemoryType):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def safe_json_stringify(data: Any) -> str:
    """Encode data as JSON text with datetimes as ISO strings; "[]" on failure."""
    try:
        return json.dumps(data, default=_encode_default)
    except (TypeError, ValueError) as e:
        print(f"Error stringifying object: {e}")
        return "[]"


def validate_memory_entries(memories: Any) -> list[dict[str, Any]]:
    """
    Keep well-formed memory entries and normalise their fields.

    An entry survives when it is a dict with string content and a known
    memory type. Missing or unreadable timestamps become now; importance
    outside 1..5 (or not a number) becomes 3.
    """
    if not isinstance(memories, list):
        return []

    valid = []
    for entry in memories:
        if not isinstance(entry, dict):
            continue
        if not isinstance(entry.get("content"), str):
            continue
        if not isinstance(entry.get("type"), str) or entry["type"] not in _MEMORY_TYPES:
            continue

        cleaned = dict(entry)

        timestamp = cleaned.get("timestamp")
        if isinstance(timestamp, str):
            try:
                timestamp = parse_iso_timestamp(timestamp)
            except ValueError:
                timestamp = None
        if not isinstance(timestamp, datetime):
            timestamp = datetime.now(timezone.utc)
        elif timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        cleaned["timestamp"] = timestamp

        importance = cleaned.get("importance")
        if (
            isinstance(importance, bool)
            or not isinstance(importance, (int, float))
            or importance < 1
            or importance > 5
        ):
            cleaned["importance"] = DEFAULT_IMPORTANCE
        else:
            cleaned["importance"] = int(importance)

        valid.append(cleaned)

    return valid

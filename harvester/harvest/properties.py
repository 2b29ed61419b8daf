"""Typed accessors over element property bags."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

LIST_DELIMITER = ":"
EMPTY_LIST_MARKER = LIST_DELIMITER * 2


def as_utc(value: Any) -> Optional[datetime]:
    """Normalize datetimes and ISO strings to aware UTC datetimes."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def get_string(properties: dict[str, Any], name: str) -> Optional[str]:
    value = properties.get(name)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def get_int(properties: dict[str, Any], name: str) -> Optional[int]:
    value = properties.get(name)
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def get_datetime(properties: dict[str, Any], name: str) -> Optional[datetime]:
    return as_utc(properties.get(name))


def get_string_list(properties: dict[str, Any], name: str) -> list[str]:
    value = properties.get(name)
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def get_map_json(properties: dict[str, Any], name: str) -> Optional[str]:
    """Serialize a nested map property with stable key order."""
    value = properties.get(name)
    if not value:
        return None
    return json.dumps(value, sort_keys=True, default=str)


def frame_list(values: Iterable[Any]) -> str:
    """Join values as ``:a:b:``; an empty input yields ``::``."""
    items = [str(value) for value in values if value is not None]
    if not items:
        return EMPTY_LIST_MARKER
    return LIST_DELIMITER + LIST_DELIMITER.join(items) + LIST_DELIMITER


def truncate(value: Optional[str], limit: int) -> Optional[str]:
    if value is None:
        return None
    return value[:limit]


def status_identifier(properties: dict[str, Any]) -> int:
    """Integer level of a governance classification; 0 when the value is not an int."""
    value = properties.get("statusIdentifier")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0

# Overview: JSON shaping for store records (ids as strings, datetimes as UTC 'Z').

from __future__ import annotations

from datetime import datetime
from typing import Any

from .identity import RecordId
from .time_utils import to_utc_z


def to_json(value: Any) -> Any:
    if isinstance(value, RecordId):
        return value.to_json()
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, dict):
        return {str(k) if isinstance(k, RecordId) else k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value

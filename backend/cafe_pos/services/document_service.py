# Overview: Daily document numbers (ORD yymmdd/NNN, PUR yymmdd/NNN).

from __future__ import annotations

from datetime import datetime

from ..store import get_store
from ..time_utils import utcnow


ORDER_PREFIX = "ORD"
PURCHASE_PREFIX = "PUR"


def sequence_key(prefix: str, now: datetime | None = None) -> str:
    now = now or utcnow()
    return f"{prefix} {now.strftime('%y%m%d')}"


def next_document_number(prefix: str, *, now: datetime | None = None) -> str:
    """
    Atomically allocate the next number for today: ``PREFIX yymmdd/NNN``.

    Each prefix and day has its own counter row in the record store, so
    numbers are never handed out twice, even to concurrent callers. A number
    drawn for a document that is never saved is simply skipped.
    """
    key = sequence_key(prefix, now)
    return f"{key}/{get_store().next_sequence(key):03d}"

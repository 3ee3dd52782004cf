# Overview: Document-style record store kept in process memory.

from __future__ import annotations

import copy
import threading

from ..identity import RecordId
from ..time_utils import utcnow
from .base import SEQUENCES_COLLECTION, RecordStore, split_lookup, split_order


def _matches(record: dict, where: dict) -> bool:
    for key, expected in where.items():
        field, op = split_lookup(key)
        actual = record.get(field)
        if op == "eq":
            if actual != expected:
                return False
            continue
        if op == "in":
            if actual is None or actual not in expected:
                return False
            continue
        if op == "ne":
            if expected is None:
                if actual is None:
                    return False
            elif actual is None or actual == expected:
                return False
            continue
        # NULL never compares, same as SQL.
        if actual is None or expected is None:
            return False
        if op == "lt" and not actual < expected:
            return False
        if op == "lte" and not actual <= expected:
            return False
        if op == "gt" and not actual > expected:
            return False
        if op == "gte" and not actual >= expected:
            return False
    return True


def _sort_key(field: str):
    # NULLs sort first ascending, matching SQLite.
    def key(record: dict) -> tuple:
        value = record.get(field)
        return (value is not None, value if value is not None else 0)
    return key


class MemoryRecordStore(RecordStore):
    """
    Collections of documents keyed by generated string ids.

    Records are deep-copied on the way in and out, so callers can never
    mutate stored state behind the store's back.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict]] = {}
        self._lock = threading.RLock()

    def clear(self) -> None:
        with self._lock:
            self._collections.clear()

    def _insert(self, collection: str, values: dict) -> None:
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            if values["id"] in docs:
                raise ValueError(f"duplicate id {values['id']!r} in {collection}")
            docs[values["id"]] = copy.deepcopy(values)

    def _select(self, collection: str, where: dict) -> list[dict]:
        docs = self._collections.get(collection, {})
        return [doc for doc in docs.values() if _matches(doc, where)]

    def _query(self, collection: str, where: dict, order_by: tuple[str, ...], limit: int | None) -> list[dict]:
        with self._lock:
            rows = self._select(collection, where)
            for key in reversed(order_by):
                field, descending = split_order(key)
                rows.sort(key=_sort_key(field), reverse=descending)
            if limit is not None:
                rows = rows[:limit]
            return copy.deepcopy(rows)

    def _update(self, collection: str, values: dict, where: dict) -> int:
        with self._lock:
            rows = self._select(collection, where)
            for doc in rows:
                doc.update(copy.deepcopy(values))
            return len(rows)

    def _delete(self, collection: str, where: dict) -> int:
        with self._lock:
            docs = self._collections.get(collection, {})
            doomed = [doc["id"] for doc in docs.values() if _matches(doc, where)]
            for record_id in doomed:
                del docs[record_id]
            return len(doomed)

    def _next_sequence(self, key: str) -> int:
        with self._lock:
            docs = self._collections.setdefault(SEQUENCES_COLLECTION, {})
            for doc in docs.values():
                if doc["sequence_key"] == key:
                    doc["next_number"] += 1
                    doc["updated_at"] = utcnow()
                    return doc["next_number"] - 1
            seq_id = RecordId.new().value
            docs[seq_id] = {"id": seq_id, "sequence_key": key, "next_number": 2, "updated_at": utcnow()}
            return 1

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))

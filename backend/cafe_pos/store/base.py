# Overview: Abstract record store contract shared by the SQL and in-memory backends.

"""
Record Store contract.

Every service talks to persistence through these operations:

- insert(collection, fields) -> RecordId
- query(collection, where=None, *, order_by=(), limit=None) -> list[dict]
- update(collection, values, where) -> int
- delete(collection, where) -> int
- next_sequence(key) -> int

`where` is a mapping of field lookups. A bare field name means equality
(``None`` means "is null"); a ``__in``, ``__ne``, ``__lt``, ``__lte``,
``__gt`` or ``__gte`` suffix selects the comparison. `order_by` lists field
names, with a leading ``-`` for descending.

Identity:
- Fields named ``id`` or ending in ``_id`` carry record identity.
- They are stored as strings and handed back as RecordId tokens, so callers
  never see backend key types.

Sequences:
- next_sequence hands out increasing, never-repeated numbers per key. Two
  callers racing on the same key always get different numbers.

Append-only:
- Ledger entries, purchases, purchase lines, payments and credit
  transactions can never be updated or deleted. The guard lives here so no
  backend can forget it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Sequence

from ..identity import RecordId, is_identity_field
from ..validation import AppendOnlyViolation


APPEND_ONLY_COLLECTIONS = frozenset({
    "inventory_ledger",
    "purchases",
    "purchase_items",
    "payments",
    "credit_transactions",
})

LOOKUP_OPERATORS = ("in", "ne", "lt", "lte", "gt", "gte")

SEQUENCES_COLLECTION = "document_sequences"


def split_lookup(key: str) -> tuple[str, str]:
    """'quantity__gte' -> ('quantity', 'gte'); 'name' -> ('name', 'eq')."""
    field, sep, op = key.rpartition("__")
    if sep and op in LOOKUP_OPERATORS and field:
        return field, op
    return key, "eq"


def split_order(key: str) -> tuple[str, bool]:
    """'-created_at' -> ('created_at', True)."""
    if key.startswith("-"):
        return key[1:], True
    return key, False


def _dump_identity(value: Any) -> Any:
    if value is None:
        return None
    return RecordId.coerce(value).value


class RecordStore(ABC):
    """Abstract persistence contract; subclasses implement the underscored hooks."""

    append_only = APPEND_ONLY_COLLECTIONS

    # ---- public contract -------------------------------------------------

    def insert(self, collection: str, fields: Mapping[str, Any]) -> RecordId:
        values = self._dump_fields(fields)
        if values.get("id") is None:
            values["id"] = RecordId.new().value
        self._insert(collection, values)
        return RecordId(values["id"])

    def query(
        self,
        collection: str,
        where: Mapping[str, Any] | None = None,
        *,
        order_by: Sequence[str] | str = (),
        limit: int | None = None,
    ) -> list[dict]:
        if isinstance(order_by, str):
            order_by = (order_by,)
        if limit is not None and limit < 0:
            raise ValueError("limit must be non-negative")
        rows = self._query(collection, self._dump_where(where), tuple(order_by), limit)
        return [self._load(row) for row in rows]

    def update(self, collection: str, values: Mapping[str, Any], where: Mapping[str, Any]) -> int:
        self._guard_mutation(collection, "update")
        if not where:
            raise ValueError("update requires a where clause")
        if not values:
            return 0
        patch = self._dump_fields(values)
        if "id" in patch:
            raise ValueError("record id cannot be changed")
        return self._update(collection, patch, self._dump_where(where))

    def delete(self, collection: str, where: Mapping[str, Any]) -> int:
        self._guard_mutation(collection, "delete")
        if not where:
            raise ValueError("delete requires a where clause")
        return self._delete(collection, self._dump_where(where))

    def next_sequence(self, key: str) -> int:
        """Draw the next number (1, 2, ...) of the named counter atomically."""
        if not isinstance(key, str) or not key.strip():
            raise ValueError("sequence key is required")
        return self._next_sequence(key.strip())

    # ---- conveniences built on the contract ------------------------------

    def get(self, collection: str, record_id: Any) -> dict | None:
        if record_id is None:
            return None
        rows = self.query(collection, {"id": record_id}, limit=1)
        return rows[0] if rows else None

    def exists(self, collection: str, where: Mapping[str, Any]) -> bool:
        return bool(self.query(collection, where, limit=1))

    # ---- backend hooks ---------------------------------------------------

    @abstractmethod
    def _insert(self, collection: str, values: dict) -> None:
        ...

    @abstractmethod
    def _query(
        self,
        collection: str,
        where: dict,
        order_by: tuple[str, ...],
        limit: int | None,
    ) -> Iterable[Mapping[str, Any]]:
        ...

    @abstractmethod
    def _update(self, collection: str, values: dict, where: dict) -> int:
        ...

    @abstractmethod
    def _delete(self, collection: str, where: dict) -> int:
        ...

    @abstractmethod
    def _next_sequence(self, key: str) -> int:
        ...

    # ---- identity (de)serialization --------------------------------------

    def _guard_mutation(self, collection: str, action: str) -> None:
        if collection in self.append_only:
            raise AppendOnlyViolation(
                f"{collection} is append-only; {action} is not permitted",
                details={"collection": collection, "action": action},
            )

    @staticmethod
    def _dump_fields(fields: Mapping[str, Any]) -> dict:
        out = {}
        for name, value in fields.items():
            out[name] = _dump_identity(value) if is_identity_field(name) else value
        return out

    @staticmethod
    def _dump_where(where: Mapping[str, Any] | None) -> dict:
        out = {}
        for key, value in (where or {}).items():
            field, op = split_lookup(key)
            if is_identity_field(field):
                if op == "in":
                    value = [_dump_identity(v) for v in value]
                else:
                    value = _dump_identity(value)
            elif op == "in":
                value = list(value)
            out[key] = value
        return out

    @staticmethod
    def _load(row: Mapping[str, Any]) -> dict:
        record = {}
        for name, value in row.items():
            if value is not None and is_identity_field(name):
                value = RecordId.coerce(value)
            record[name] = value
        return record

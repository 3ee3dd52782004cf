# Overview: Opaque record identity shared by every record store backend.

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from .validation import ValidationError


@dataclass(frozen=True, order=True)
class RecordId:
    """
    Backend-agnostic identity token.

    Every backend hands these out from insert() and every service compares,
    hashes and serializes them the same way. The wrapped value is always a
    string: an integer key and a document key that print the same are the
    same record.
    """
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValueError("RecordId requires a non-empty string")

    @classmethod
    def new(cls) -> "RecordId":
        return cls(uuid.uuid4().hex)

    @classmethod
    def coerce(cls, raw: Any) -> "RecordId":
        """Normalize user/backend input (RecordId, str or int) to a RecordId."""
        if isinstance(raw, RecordId):
            return raw
        if isinstance(raw, bool):
            raise ValidationError("boolean is not a record id")
        if isinstance(raw, int):
            return cls(str(raw))
        if isinstance(raw, str):
            if not raw.strip():
                raise ValidationError("record id is empty")
            return cls(raw.strip())
        raise ValidationError(
            f"cannot use {type(raw).__name__} as a record id",
            details={"type": type(raw).__name__},
        )

    @classmethod
    def coerce_optional(cls, raw: Any) -> "RecordId | None":
        if raw is None or raw == "":
            return None
        return cls.coerce(raw)

    def __str__(self) -> str:
        return self.value

    def to_json(self) -> str:
        return self.value


def is_identity_field(name: str) -> bool:
    """Fields holding record identity: the primary key and every *_id reference."""
    return name == "id" or name.endswith("_id")

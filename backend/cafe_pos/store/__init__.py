# Overview: Record store package; backend selection and app registration.

from __future__ import annotations

from flask import Flask, current_app

from .base import APPEND_ONLY_COLLECTIONS, RecordStore
from .memory import MemoryRecordStore
from .sql import SqlRecordStore

EXTENSION_KEY = "record_store"


def build_store(kind: str) -> RecordStore:
    kind = (kind or "sql").strip().lower()
    if kind == "sql":
        from ..extensions import db
        return SqlRecordStore(db)
    if kind == "memory":
        return MemoryRecordStore()
    raise ValueError(f"unknown RECORD_STORE backend: {kind!r}")


def init_store(app: Flask) -> RecordStore:
    store = build_store(app.config.get("RECORD_STORE", "sql"))
    app.extensions[EXTENSION_KEY] = store
    return store


def get_store() -> RecordStore:
    """Record store bound to the active Flask app."""
    return current_app.extensions[EXTENSION_KEY]


__all__ = [
    "APPEND_ONLY_COLLECTIONS",
    "RecordStore",
    "SqlRecordStore",
    "MemoryRecordStore",
    "build_store",
    "init_store",
    "get_store",
]

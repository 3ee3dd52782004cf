# backend/cafe_pos/config.py
from __future__ import annotations
import os


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cafe_pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cafe_pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "sql" persists through SQLAlchemy tables, "memory" keeps documents in-process
    RECORD_STORE = os.environ.get("RECORD_STORE", "sql")

    # Only products in these categories take part in stock checks and low-stock alerts
    COUNTABLE_CATEGORIES = _csv(
        os.environ.get("COUNTABLE_CATEGORIES", "Food,Cold Drinks,Cigarettes,Smokes,Snacks")
    )
    EXCLUDED_CATEGORIES = _csv(
        os.environ.get("EXCLUDED_CATEGORIES", "Tea,Coffee,Drinks,Hookah")
    )
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "0"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Overview: Dashboard aggregates derived from orders, the credit log and the ledger.

from __future__ import annotations

from datetime import datetime

from .. import events
from ..store import get_store
from ..time_utils import day_bounds, to_utc_z, utcnow
from .credit_service import CREDIT_TRANSACTIONS, TX_CREDIT
from .inventory_service import low_stock_products
from .order_service import ORDERS, STATUS_COMPLETED


def today_sales(now: datetime | None = None) -> int:
    """Money collected on orders completed today."""
    start, end = day_bounds(now)
    orders = get_store().query(ORDERS, {
        "status": STATUS_COMPLETED,
        "completed_at__gte": start,
        "completed_at__lt": end,
    })
    return sum(o["paid_amount_cents"] for o in orders)


def today_credit(now: datetime | None = None) -> int:
    """Credit granted today."""
    start, end = day_bounds(now)
    txs = get_store().query(CREDIT_TRANSACTIONS, {
        "transaction_type": TX_CREDIT,
        "created_at__gte": start,
        "created_at__lt": end,
    })
    return sum(tx["amount_cents"] for tx in txs)


def low_stock_count(threshold: int | None = None) -> int:
    return len(low_stock_products(threshold))


def dashboard_snapshot(now: datetime | None = None) -> dict:
    now = now or utcnow()
    return {
        "today_sales_cents": today_sales(now),
        "today_credit_cents": today_credit(now),
        "low_stock_count": low_stock_count(),
        "generated_at": to_utc_z(now),
    }


class DashboardSummary:
    """
    Read-model that recomputes its snapshot whenever an order settles,
    credit is paid or an order is cancelled.
    """

    SIGNALS = (events.order_settled, events.credit_paid, events.order_cancelled)

    def __init__(self) -> None:
        self.snapshot: dict = {}
        self.refresh_count = 0
        self.last_event: dict | None = None

    def connect(self) -> "DashboardSummary":
        for signal in self.SIGNALS:
            signal.connect(self._on_event)
        return self

    def disconnect(self) -> None:
        for signal in self.SIGNALS:
            signal.disconnect(self._on_event)

    def refresh(self, now: datetime | None = None) -> dict:
        self.snapshot = dashboard_snapshot(now)
        self.refresh_count += 1
        return self.snapshot

    def _on_event(self, sender, payload=None, **_) -> None:
        self.last_event = payload
        self.refresh()

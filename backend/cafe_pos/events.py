# Overview: Named signals that let read-models refresh after core writes.

"""
Settlement notification channel.

Publishers send plain payload dicts; subscribers connect a callable with the
blinker signature ``handler(sender, payload)``. Nothing here knows about any
screen or view object.
"""

from __future__ import annotations

from blinker import Namespace


_signals = Namespace()

order_settled = _signals.signal("order-settled")
credit_paid = _signals.signal("credit-paid")
order_cancelled = _signals.signal("order-cancelled")
stock_changed = _signals.signal("stock-changed")

SENDER = "cafe_pos"


def publish(signal, payload: dict) -> None:
    signal.send(SENDER, payload=payload)

from datetime import datetime

import pytest

from cafe_pos import events
from cafe_pos.services import ledger_service
from cafe_pos.store import get_store
from cafe_pos.validation import (
    AlreadyReversedError,
    AppendOnlyViolation,
    IntegrityViolation,
    NotFoundError,
    ValidationError,
)


def _in(product, qty, **kw):
    return ledger_service.record_entry(product["id"], quantity_in=qty, transaction_type="purchase", **kw)


def _out(product, qty, **kw):
    return ledger_service.record_entry(product["id"], quantity_out=qty, transaction_type="sale", **kw)


def test_stock_is_zero_without_entries(burger):
    assert ledger_service.current_stock(burger["id"]) == 0


def test_stock_folds_in_minus_out(burger):
    _in(burger, 10)
    _out(burger, 3)
    _in(burger, 2)
    assert ledger_service.current_stock(burger["id"]) == 9


def test_entry_snapshots_product_and_reference(burger):
    entry = _out(burger, 2, reference_type="order", reference_id="o1", reference_line_id="l1", actor="ana")
    assert entry["product_name"] == "Burger"
    assert entry["quantity_out"] == 2
    assert entry["quantity_in"] == 0
    assert str(entry["reference_id"]) == "o1"
    assert str(entry["reference_line_id"]) == "l1"
    assert entry["created_by"] == "ana"
    assert entry["reverses_entry_id"] is None


@pytest.mark.parametrize("kwargs", [
    {"quantity_in": 1, "quantity_out": 1},
    {},
    {"quantity_in": -2},
    {"quantity_out": 0},
])
def test_record_entry_rejects_bad_quantities(burger, kwargs):
    with pytest.raises(ValidationError):
        ledger_service.record_entry(burger["id"], transaction_type="adjustment", **kwargs)


def test_record_entry_rejects_unknown_and_correction_types(burger):
    with pytest.raises(ValidationError):
        ledger_service.record_entry(burger["id"], quantity_in=1, transaction_type="gift")
    with pytest.raises(ValidationError):
        ledger_service.record_entry(burger["id"], quantity_in=1, transaction_type="correction")


def test_record_entry_unknown_product(store):
    with pytest.raises(NotFoundError):
        ledger_service.record_entry("missing", quantity_in=1, transaction_type="purchase")


def test_batch_stock_includes_every_requested_id(burger, fries, latte):
    _in(burger, 5)
    _in(fries, 4)
    _out(fries, 1)
    levels = ledger_service.current_stock_batch([burger["id"], fries["id"], latte["id"]])
    assert levels == {burger["id"]: 5, fries["id"]: 3, latte["id"]: 0}
    assert ledger_service.current_stock_batch([]) == {}


def test_record_entries_validates_all_before_writing(burger):
    with pytest.raises(ValidationError):
        ledger_service.record_entries([
            {"product_id": burger["id"], "quantity_in": 5, "transaction_type": "purchase"},
            {"product_id": burger["id"], "quantity_in": 0, "transaction_type": "purchase"},
        ])
    assert ledger_service.current_stock(burger["id"]) == 0

    written = ledger_service.record_entries([
        {"product_id": burger["id"], "quantity_in": 5, "transaction_type": "purchase"},
        {"product_id": burger["id"], "quantity_out": 2, "transaction_type": "sale"},
    ])
    assert len(written) == 2
    assert ledger_service.current_stock(burger["id"]) == 3


def test_reverse_entry_appends_swapped_correction(burger):
    sale = _out(burger, 3, reference_type="order", reference_id="o1", reference_line_id="l1")
    _in(burger, 10)

    correction = ledger_service.reverse_entry(sale["id"], reason="customer changed mind")
    assert correction["transaction_type"] == "correction"
    assert correction["quantity_in"] == 3
    assert correction["quantity_out"] == 0
    assert correction["reverses_entry_id"] == sale["id"]
    assert correction["reference_id"] == sale["reference_id"]
    assert correction["reference_line_id"] == sale["reference_line_id"]
    assert correction["notes"] == "customer changed mind"

    # Original untouched
    assert ledger_service.get_entry(sale["id"]) == sale
    assert ledger_service.is_reversed(sale["id"])
    assert ledger_service.current_stock(burger["id"]) == 10


def test_entry_can_only_be_reversed_once(burger):
    entry = _in(burger, 4)
    correction = ledger_service.reverse_entry(entry["id"])
    with pytest.raises(AlreadyReversedError):
        ledger_service.reverse_entry(entry["id"])
    with pytest.raises(IntegrityViolation):
        ledger_service.reverse_entry(correction["id"])
    assert ledger_service.current_stock(burger["id"]) == 0


def test_reverse_reference_skips_already_reversed(burger, fries):
    a = _in(burger, 5, reference_type="purchase", reference_id="p1")
    _in(fries, 7, reference_type="purchase", reference_id="p1")
    _in(burger, 1, reference_type="purchase", reference_id="p2")
    ledger_service.reverse_entry(a["id"])

    corrections = ledger_service.reverse_reference("purchase", "p1", reason="wrong bill")
    assert [c["product_id"] for c in corrections] == [fries["id"]]
    assert ledger_service.current_stock(burger["id"]) == 1
    assert ledger_service.current_stock(fries["id"]) == 0
    assert ledger_service.reverse_reference("purchase", "p1") == []


def test_ledger_rows_cannot_be_edited(burger):
    entry = _in(burger, 4)
    with pytest.raises(AppendOnlyViolation):
        get_store().update("inventory_ledger", {"quantity_in": 40}, {"id": entry["id"]})
    with pytest.raises(AppendOnlyViolation):
        get_store().delete("inventory_ledger", {"id": entry["id"]})
    assert ledger_service.current_stock(burger["id"]) == 4


def test_history_is_newest_first_and_limited(burger, ticking_clock):
    ids = [_in(burger, n + 1)["id"] for n in range(5)]
    got = ledger_service.history(burger["id"], limit=3)
    assert [e["id"] for e in got] == list(reversed(ids))[:3]


def test_iter_history_pages_through_everything(burger, ticking_clock):
    for n in range(7):
        _in(burger, n + 1)
    entries = list(ledger_service.iter_history(burger["id"], page_size=2))
    assert len(entries) == 7
    assert len({e["id"] for e in entries}) == 7
    stamps = [e["created_at"] for e in entries]
    assert stamps == sorted(stamps, reverse=True)


def test_iter_history_handles_identical_timestamps(store, burger, monkeypatch):
    frozen = datetime(2026, 10, 17, 8, 30)
    monkeypatch.setattr(ledger_service, "utcnow", lambda: frozen)
    for n in range(5):
        _in(burger, n + 1)

    entries = list(ledger_service.iter_history(burger["id"], page_size=2))
    assert len(entries) == 5
    assert len({e["id"] for e in entries}) == 5
    assert sum(e["quantity_in"] for e in entries) == 15


def test_iter_history_ignores_appends_made_while_reading(burger, ticking_clock):
    for n in range(4):
        _in(burger, 1)
    reader = ledger_service.iter_history(burger["id"], page_size=2)
    first = next(reader)
    _out(burger, 1)
    rest = list(reader)
    assert len([first] + rest) == 4
    assert all(e["transaction_type"] == "purchase" for e in rest)

    # A fresh call starts from the newest entry again
    assert next(ledger_service.iter_history(burger["id"]))["transaction_type"] == "sale"


def test_iter_history_rejects_bad_page_size(burger):
    with pytest.raises(ValidationError):
        list(ledger_service.iter_history(burger["id"], page_size=0))


def test_appends_publish_stock_changed(burger):
    seen = []

    def receiver(sender, payload):
        seen.append(payload)

    events.stock_changed.connect(receiver)
    try:
        _in(burger, 3)
        _out(burger, 1)
    finally:
        events.stock_changed.disconnect(receiver)

    assert [p["delta"] for p in seen] == [3, -1]
    assert all(p["product_id"] == burger["id"] for p in seen)

"""Document numbering draws from atomic per-day counters."""

import threading
from datetime import datetime

import pytest

from cafe_pos.services import document_service, order_service
from cafe_pos.services.document_service import ORDER_PREFIX, PURCHASE_PREFIX
from cafe_pos.store import MemoryRecordStore


MORNING = datetime(2026, 10, 17, 9, 30)


def test_consecutive_draws_differ_before_any_document_is_saved(store):
    first = document_service.next_document_number(ORDER_PREFIX, now=MORNING)
    second = document_service.next_document_number(ORDER_PREFIX, now=MORNING)

    assert first == "ORD 261017/001"
    assert second == "ORD 261017/002"
    assert store.query("orders") == []


def test_counters_are_separate_per_prefix_and_day(store):
    next_day = datetime(2026, 10, 18, 0, 5)

    assert document_service.next_document_number(ORDER_PREFIX, now=MORNING).endswith("/001")
    assert document_service.next_document_number(PURCHASE_PREFIX, now=MORNING) == "PUR 261017/001"
    assert document_service.next_document_number(ORDER_PREFIX, now=next_day) == "ORD 261018/001"
    assert document_service.next_document_number(ORDER_PREFIX, now=MORNING).endswith("/002")


def test_deleted_order_number_is_not_handed_out_again(store):
    first = order_service.get_order(order_service.create_order())
    order_service.delete_order(first["id"], actor="manager")

    second = order_service.get_order(order_service.create_order())
    assert second["order_number"] != first["order_number"]
    assert second["order_number"].endswith("/002")


def test_next_sequence_counts_from_one_per_key(store):
    assert [store.next_sequence("A") for _ in range(3)] == [1, 2, 3]
    assert store.next_sequence("B") == 1
    assert store.next_sequence(" A ") == 4


@pytest.mark.parametrize("key", ["", "   ", None])
def test_next_sequence_requires_a_key(store, key):
    with pytest.raises(ValueError):
        store.next_sequence(key)


def test_memory_sequence_is_unique_across_threads():
    store = MemoryRecordStore()
    drawn = []
    lock = threading.Lock()

    def worker():
        numbers = [store.next_sequence("ORD 261017") for _ in range(50)]
        with lock:
            drawn.extend(numbers)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(drawn) == list(range(1, 401))

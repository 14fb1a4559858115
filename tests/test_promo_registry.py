import threading

import pytest

from conftest import make_promo
from models.sql.promo_code_redemption import REDEMPTION_STATUS_REDEEMED
from services.promo_registry import (
    DuplicatePromoCodeError,
    InMemoryPromoRegistry,
    PromoCodeNotFoundError,
    RegistryBusyError,
    UnknownCodePolicy,
)


@pytest.fixture
def empty_registry():
    return InMemoryPromoRegistry()


def test_lookup_is_case_insensitive_and_trims(empty_registry):
    stored = empty_registry.add(make_promo(code="Summer24"))

    assert stored.code == "SUMMER24"
    assert empty_registry.lookup("summer24").id == stored.id
    assert empty_registry.lookup(" SUMMER24 ").id == stored.id
    assert empty_registry.lookup("SUMMER") is None


def test_duplicate_codes_are_rejected(empty_registry):
    empty_registry.add(make_promo(code="DUP"))
    with pytest.raises(DuplicatePromoCodeError):
        empty_registry.add(make_promo(code="dup"))


def test_ids_are_unique(empty_registry):
    first = empty_registry.add(make_promo(code="A"))
    second = empty_registry.add(make_promo(code="B"))
    assert first.id != second.id


def test_apply_updates_counters_and_ledger(empty_registry):
    promo = empty_registry.add(make_promo(code="APPLY"))

    redemption = empty_registry.apply(promo.id, "txn_1", "user_a", 2.5)
    empty_registry.apply(promo.id, "txn_2", "user_a", 1.5)

    current = empty_registry.lookup("APPLY")
    assert current.usage_count == 2
    assert current.total_discount_utilized == 4.0
    assert redemption.promo_code_id == promo.id
    assert redemption.transaction_id == "txn_1"
    assert redemption.discount_amount == 2.5
    assert redemption.status == REDEMPTION_STATUS_REDEEMED
    assert [r.transaction_id for r in empty_registry.list_redemptions(promo.id)] == ["txn_1", "txn_2"]


def test_apply_is_not_idempotent(empty_registry):
    promo = empty_registry.add(make_promo(code="TWICE"))
    empty_registry.apply(promo.id, "txn_same", "user_a", 1.0)
    empty_registry.apply(promo.id, "txn_same", "user_a", 1.0)

    assert empty_registry.lookup("TWICE").usage_count == 2
    assert empty_registry.count_user_redemptions("user_a", promo.id) == 2


def test_count_user_redemptions_matches_user_and_promo(empty_registry):
    first = empty_registry.add(make_promo(code="FIRST"))
    second = empty_registry.add(make_promo(code="SECOND"))
    empty_registry.apply(first.id, "txn_1", "user_a", 0.0)
    empty_registry.apply(first.id, "txn_2", "user_b", 0.0)
    empty_registry.apply(second.id, "txn_3", "user_a", 0.0)

    assert empty_registry.count_user_redemptions("user_a", first.id) == 1
    assert empty_registry.count_user_redemptions("user_b", second.id) == 0
    assert empty_registry.count_user_redemptions("nobody", first.id) == 0


def test_lookup_returns_a_snapshot(empty_registry):
    promo = empty_registry.add(make_promo(code="SNAP", restrictions={"corridors": ["GBP-NGN"]}))
    snapshot = empty_registry.lookup("SNAP")

    empty_registry.apply(promo.id, "txn_1", "user_a", 3.0)
    snapshot.usage_count = 99
    snapshot.restrictions["corridors"].append("GBP-KES")

    current = empty_registry.lookup("SNAP")
    assert current.usage_count == 1
    assert current.corridors == ["GBP-NGN"]


def test_unknown_code_is_ignored_by_default(empty_registry):
    assert empty_registry.apply("missing-id", "txn_1", "user_a", 1.0) is None
    assert empty_registry.list_redemptions() == []


def test_unknown_code_can_raise():
    registry = InMemoryPromoRegistry(unknown_code_policy=UnknownCodePolicy.RAISE)
    with pytest.raises(PromoCodeNotFoundError) as excinfo:
        registry.apply("missing-id", "txn_1", "user_a", 1.0)
    assert excinfo.value.promo_code_id == "missing-id"


def test_negative_discount_is_rejected(empty_registry):
    promo = empty_registry.add(make_promo(code="NEG"))
    with pytest.raises(ValueError):
        empty_registry.apply(promo.id, "txn_1", "user_a", -1.0)
    assert empty_registry.lookup("NEG").usage_count == 0


def test_apply_times_out_when_lock_is_held():
    registry = InMemoryPromoRegistry(lock_timeout_seconds=0.05)
    promo = registry.add(make_promo(code="BUSY"))

    registry._lock.acquire()
    try:
        with pytest.raises(RegistryBusyError):
            registry.apply(promo.id, "txn_1", "user_a", 1.0)
    finally:
        registry._lock.release()

    assert registry.lookup("BUSY").usage_count == 0


def test_concurrent_apply_loses_no_updates(empty_registry):
    promo = empty_registry.add(make_promo(code="RUSH"))
    threads_count, applies_per_thread = 8, 50
    start = threading.Barrier(threads_count)

    def worker(worker_id):
        start.wait()
        for n in range(applies_per_thread):
            empty_registry.apply(promo.id, f"txn_{worker_id}_{n}", f"user_{worker_id}", 0.5)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    current = empty_registry.lookup("RUSH")
    total = threads_count * applies_per_thread
    assert current.usage_count == total
    assert current.total_discount_utilized == total * 0.5
    assert len(empty_registry.list_redemptions(promo.id)) == total


def test_list_codes_newest_window_first(registry):
    assert [promo.code for promo in registry.list_codes()][0] == "BOOSTRATE"
    assert {promo.code for promo in registry.list_codes()} == {"SAVE20", "WELCOME", "BOOSTRATE", "GLITCH500"}

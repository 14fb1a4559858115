import threading
from datetime import timezone

import pytest

from conftest import FIXED_NOW, make_promo, make_request
from models.sql.promo_code import PromoKind, PromoStatus
from services.promo_evaluator import PromoEvaluator, PromoValidationError
from services.promo_registry import DuplicatePromoCodeError, PromoCodeNotFoundError, UnknownCodePolicy
from services.promo_seed import seed_demo_promo_codes
from services.sql_promo_registry import SqlPromoRegistry, create_registry_engine


@pytest.fixture
def sql_registry(tmp_path):
    engine = create_registry_engine(f"sqlite:///{tmp_path / 'promocodes.db'}")
    registry = SqlPromoRegistry(engine)
    registry.create_tables()
    yield registry
    engine.dispose()


def test_roundtrips_definitions(sql_registry):
    stored = sql_registry.add(
        make_promo(
            code="sqlcode",
            kind=PromoKind.PERCENTAGE,
            value=20,
            max_discount=0.75,
            restrictions={"corridors": ["GBP-NGN"], "paymentMethods": ["card"]},
        )
    )
    promo = sql_registry.lookup("SqlCode")

    assert promo.id == stored.id
    assert promo.code == "SQLCODE"
    assert promo.kind == PromoKind.PERCENTAGE
    assert promo.status == PromoStatus.ACTIVE
    assert promo.max_discount == 0.75
    assert promo.corridors == ["GBP-NGN"]
    assert promo.payment_methods == ["card"]
    assert promo.start_date.tzinfo is not None
    assert promo.start_date.astimezone(timezone.utc).year == 2024
    assert sql_registry.lookup("missing") is None


def test_duplicate_codes_are_rejected(sql_registry):
    sql_registry.add(make_promo(code="DUP"))
    with pytest.raises(DuplicatePromoCodeError):
        sql_registry.add(make_promo(code="dup"))


def test_apply_updates_counters_and_ledger(sql_registry):
    promo = sql_registry.add(make_promo(code="APPLY"))

    redemption = sql_registry.apply(promo.id, "txn_1", "user_a", 2.5)
    sql_registry.apply(promo.id, "txn_2", "user_b", 1.5)

    current = sql_registry.lookup("APPLY")
    assert current.usage_count == 2
    assert current.total_discount_utilized == 4.0
    assert redemption.transaction_id == "txn_1"
    assert sql_registry.count_user_redemptions("user_a", promo.id) == 1
    assert sql_registry.count_user_redemptions("user_c", promo.id) == 0
    assert len(sql_registry.list_redemptions(promo.id)) == 2


def test_unknown_code_policies(sql_registry):
    assert sql_registry.apply("missing-id", "txn_1", "user_a", 1.0) is None
    assert sql_registry.list_redemptions() == []

    strict = SqlPromoRegistry(sql_registry.engine, unknown_code_policy=UnknownCodePolicy.RAISE)
    with pytest.raises(PromoCodeNotFoundError):
        strict.apply("missing-id", "txn_1", "user_a", 1.0)


def test_negative_discount_is_rejected(sql_registry):
    promo = sql_registry.add(make_promo(code="NEG"))
    with pytest.raises(ValueError):
        sql_registry.apply(promo.id, "txn_1", "user_a", -0.01)


def test_concurrent_apply_loses_no_updates(sql_registry):
    promo = sql_registry.add(make_promo(code="RUSH"))
    threads_count, applies_per_thread = 4, 10
    start = threading.Barrier(threads_count)
    errors = []

    def worker(worker_id):
        start.wait()
        for n in range(applies_per_thread):
            try:
                sql_registry.apply(promo.id, f"txn_{worker_id}_{n}", f"user_{worker_id}", 1.0)
            except Exception as exc:
                errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(threads_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    current = sql_registry.lookup("RUSH")
    assert current.usage_count == threads_count * applies_per_thread
    assert current.total_discount_utilized == threads_count * applies_per_thread * 1.0


def test_evaluator_runs_on_the_sql_backend(sql_registry):
    seed_demo_promo_codes(sql_registry)
    evaluator = PromoEvaluator(sql_registry, clock=lambda: FIXED_NOW)

    result = evaluator.validate(make_request(code="SAVE20", amount=150))
    assert result.valid
    assert result.applied_discount == 1.00

    sql_registry.apply(result.promo.id, "txn_1", "user_a", result.applied_discount)
    blocked = evaluator.validate(make_request(code="SAVE20", amount=150))
    assert blocked.error == PromoValidationError.PER_USER_LIMIT_REACHED


def test_seeding_twice_keeps_existing_codes(sql_registry):
    assert seed_demo_promo_codes(sql_registry) == 4
    assert seed_demo_promo_codes(sql_registry) == 0
    assert [promo.code for promo in sql_registry.list_codes()][0] == "BOOSTRATE"

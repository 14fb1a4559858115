from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from models.sql.promo_code import UNLIMITED, PromoCodeModel, PromoKind, PromoStatus
from services.bonus_ledger import BonusLedger
from services.promo_evaluator import PromoEvaluator, PromoValidationRequest
from services.promo_registry import InMemoryPromoRegistry
from services.promo_seed import seed_demo_promo_codes
from utils.config_validator import PromoServiceConfig

# Inside every demo campaign window, BOOSTRATE's summer window included.
FIXED_NOW = datetime(2024, 7, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_promo(**overrides) -> PromoCodeModel:
    fields = dict(
        code="TESTCODE",
        kind=PromoKind.FIXED,
        value=5,
        min_threshold=0,
        currency="GBP",
        usage_limit_global=UNLIMITED,
        usage_limit_per_user=UNLIMITED,
        budget_limit=UNLIMITED,
        start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end_date=datetime(2024, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
        status=PromoStatus.ACTIVE,
        restrictions={},
    )
    fields.update(overrides)
    return PromoCodeModel(**fields)


def make_request(**overrides) -> PromoValidationRequest:
    fields = dict(
        code="SAVE20",
        amount=150,
        currency="GBP",
        user_id="user_a",
        source_currency="GBP",
        dest_currency="NGN",
        payment_method="bank_deposit",
    )
    fields.update(overrides)
    return PromoValidationRequest(**fields)


@pytest.fixture
def registry():
    registry = InMemoryPromoRegistry()
    seed_demo_promo_codes(registry)
    return registry


@pytest.fixture
def evaluator(registry):
    return PromoEvaluator(registry, clock=lambda: FIXED_NOW)


@pytest.fixture
def bonus_ledger():
    return BonusLedger.with_demo_balance()


@pytest.fixture
def client(registry, bonus_ledger):
    app = create_app(
        config=PromoServiceConfig(),
        promo_registry=registry,
        bonus_ledger=bonus_ledger,
        clock=lambda: FIXED_NOW,
    )
    with TestClient(app) as client:
        yield client

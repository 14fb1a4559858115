import logging
from datetime import datetime, timezone
from typing import List

from models.sql.promo_code import UNLIMITED, PromoCodeModel, PromoKind, PromoStatus
from services.promo_registry import DuplicatePromoCodeError, PromoRegistry

logger = logging.getLogger(__name__)


def _utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


def demo_promo_codes() -> List[PromoCodeModel]:
    return [
        # 20% off the transfer fee
        PromoCodeModel(
            code="SAVE20",
            kind=PromoKind.PERCENTAGE,
            value=20,
            min_threshold=100,
            currency="GBP",
            usage_limit_global=1000,
            usage_limit_per_user=1,
            budget_limit=UNLIMITED,
            start_date=_utc(2024, 1, 1),
            end_date=_utc(2024, 12, 31, 23, 59, 59),
            status=PromoStatus.ACTIVE,
            restrictions={},
        ),
        # GBP 5 off
        PromoCodeModel(
            code="WELCOME",
            kind=PromoKind.FIXED,
            value=5,
            min_threshold=50,
            currency="GBP",
            usage_limit_global=UNLIMITED,
            usage_limit_per_user=1,
            budget_limit=10000,
            start_date=_utc(2024, 1, 1),
            end_date=_utc(2025, 12, 31, 23, 59, 59),
            status=PromoStatus.ACTIVE,
            restrictions={},
        ),
        PromoCodeModel(
            code="BOOSTRATE",
            kind=PromoKind.FX_BOOST,
            value=5.0,
            min_threshold=500,
            currency="GBP",
            usage_limit_global=UNLIMITED,
            usage_limit_per_user=3,
            budget_limit=UNLIMITED,
            start_date=_utc(2024, 6, 1),
            end_date=_utc(2024, 8, 31, 23, 59, 59),
            status=PromoStatus.ACTIVE,
            restrictions={},
        ),
        # Kill-switched after a pricing glitch
        PromoCodeModel(
            code="GLITCH500",
            kind=PromoKind.FIXED,
            value=500,
            min_threshold=0,
            currency="USD",
            usage_limit_global=50,
            usage_limit_per_user=1,
            budget_limit=UNLIMITED,
            start_date=_utc(2024, 1, 1),
            end_date=_utc(2024, 12, 31, 23, 59, 59),
            status=PromoStatus.DISABLED,
            restrictions={},
        ),
    ]


def seed_demo_promo_codes(registry: PromoRegistry) -> int:
    """Register the demo catalog; codes already present are left untouched."""
    seeded = 0
    for promo in demo_promo_codes():
        try:
            registry.add(promo)
            seeded += 1
        except DuplicatePromoCodeError:
            logger.info(f"Promo {promo.code} already registered, skipping seed")
    logger.info(f"Seeded {seeded} demo promo codes")
    return seeded

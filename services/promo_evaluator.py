"""
Promo code validation.

PromoEvaluator holds no state of its own: it reads the registry, runs the
eligibility checks in a fixed order and reports the first failure, or the
discount the code yields. Nothing here mutates the registry.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from models.sql.promo_code import UNLIMITED, PromoCodeModel, PromoStatus
from services.promo_discounts import calculate_discount, format_display_text, format_number
from services.promo_registry import PromoRegistry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PromoValidationError(str, Enum):
    INVALID_CODE = "InvalidCode"
    INACTIVE = "Inactive"
    NOT_YET_ACTIVE = "NotYetActive"
    EXPIRED = "Expired"
    USAGE_LIMIT_REACHED = "UsageLimitReached"
    BUDGET_EXHAUSTED = "BudgetExhausted"
    PER_USER_LIMIT_REACHED = "PerUserLimitReached"
    BELOW_MINIMUM = "BelowMinimum"
    CORRIDOR_NOT_ALLOWED = "CorridorNotAllowed"
    PAYMENT_METHOD_NOT_ALLOWED = "PaymentMethodNotAllowed"

    def message(self, promo: Optional[PromoCodeModel] = None) -> str:
        if self is PromoValidationError.BELOW_MINIMUM and promo is not None:
            return f"Minimum transfer amount is {promo.currency} {format_number(promo.min_threshold)}"
        return ERROR_MESSAGES[self]


ERROR_MESSAGES = {
    PromoValidationError.INVALID_CODE: "Invalid promo code",
    PromoValidationError.INACTIVE: "Promo code is inactive",
    PromoValidationError.NOT_YET_ACTIVE: "Promo code not yet active",
    PromoValidationError.EXPIRED: "Promo code expired",
    PromoValidationError.USAGE_LIMIT_REACHED: "Promo code fully redeemed (usage limit reached)",
    PromoValidationError.BUDGET_EXHAUSTED: "Promo code fully redeemed (budget exhausted)",
    PromoValidationError.PER_USER_LIMIT_REACHED: "You have already used this promo code",
    PromoValidationError.BELOW_MINIMUM: "Transfer amount is below the promo minimum",
    PromoValidationError.CORRIDOR_NOT_ALLOWED: "Promo code not valid for this currency corridor",
    PromoValidationError.PAYMENT_METHOD_NOT_ALLOWED: "Promo code not valid for this payment method",
}


@dataclass
class PromoValidationRequest:
    code: str
    amount: float
    currency: str
    user_id: str
    source_currency: Optional[str] = None
    dest_currency: Optional[str] = None
    payment_method: Optional[str] = None

    @property
    def corridor(self) -> str:
        return f"{self.source_currency}-{self.dest_currency}"


@dataclass
class PromoValidationResult:
    """
    Verdict of a validation.

    Attributes:
        valid: Whether the code can be used for the proposed transfer.
        error: Failure reason when not valid.
        error_message: Human-readable form of ``error``.
        promo: Snapshot of the promo definition when valid.
        applied_discount: Fee discount in the promo currency, 2 decimal places.
        display_text: Summary shown next to the code at checkout.
    """

    valid: bool
    error: Optional[PromoValidationError] = None
    error_message: str = ""
    promo: Optional[PromoCodeModel] = None
    applied_discount: float = 0.0
    display_text: str = ""

    @classmethod
    def failure(
        cls, error: PromoValidationError, promo: Optional[PromoCodeModel] = None
    ) -> "PromoValidationResult":
        return cls(valid=False, error=error, error_message=error.message(promo))


class PromoEvaluator:
    def __init__(self, registry: PromoRegistry, clock: Optional[Clock] = None):
        self.registry = registry
        self.clock = clock or utc_now

    def validate(self, request: PromoValidationRequest) -> PromoValidationResult:
        promo = self.registry.lookup(request.code)
        if promo is None:
            result = PromoValidationResult.failure(PromoValidationError.INVALID_CODE)
        else:
            error = self._first_failure(promo, request)
            if error is not None:
                result = PromoValidationResult.failure(error, promo)
            else:
                discount = calculate_discount(promo)
                result = PromoValidationResult(
                    valid=True,
                    promo=promo,
                    applied_discount=discount,
                    display_text=format_display_text(
                        promo, discount, request.source_currency, request.dest_currency
                    ),
                )

        logger.debug(
            f"Validated promo {request.code!r} for {request.user_id}: "
            f"{'valid' if result.valid else result.error.value}"
        )
        return result

    def _first_failure(
        self, promo: PromoCodeModel, request: PromoValidationRequest
    ) -> Optional[PromoValidationError]:
        # Order is part of the contract: the first failing check is reported.
        now = _as_utc(self.clock())

        if promo.status != PromoStatus.ACTIVE:
            return PromoValidationError.INACTIVE

        if now < _as_utc(promo.start_date):
            return PromoValidationError.NOT_YET_ACTIVE

        if now > _as_utc(promo.end_date):
            return PromoValidationError.EXPIRED

        if promo.usage_limit_global != UNLIMITED and promo.usage_count >= promo.usage_limit_global:
            return PromoValidationError.USAGE_LIMIT_REACHED

        if promo.budget_limit != UNLIMITED and promo.total_discount_utilized >= promo.budget_limit:
            return PromoValidationError.BUDGET_EXHAUSTED

        # A per-user limit of -1 also means unlimited, skipping the ledger scan.
        if promo.usage_limit_per_user != UNLIMITED:
            used = self.registry.count_user_redemptions(request.user_id, promo.id)
            if used >= promo.usage_limit_per_user:
                return PromoValidationError.PER_USER_LIMIT_REACHED

        if request.amount < promo.min_threshold:
            return PromoValidationError.BELOW_MINIMUM

        corridors = promo.corridors
        if corridors and request.corridor not in corridors:
            return PromoValidationError.CORRIDOR_NOT_ALLOWED

        payment_methods = promo.payment_methods
        if payment_methods and request.payment_method not in payment_methods:
            return PromoValidationError.PAYMENT_METHOD_NOT_ALLOWED

        return None

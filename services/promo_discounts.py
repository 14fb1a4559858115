"""
Discount math and display text, one entry per promo kind.

Amounts are computed with Decimal and rounded half-up to 2 places, so
1.005 becomes 1.01.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Optional

from models.sql.promo_code import PromoCodeModel, PromoKind

# Nominal transfer fee, in the promo currency, that percentage codes discount.
REFERENCE_FEE = Decimal("5.00")
CENT = Decimal("0.01")


def _decimal(value: float) -> Decimal:
    return Decimal(str(value))


def format_number(value: float) -> str:
    """20.0 -> "20", 2.5 -> "2.5" """
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return str(number)


def _percentage_discount(promo: PromoCodeModel) -> Decimal:
    return REFERENCE_FEE * _decimal(promo.value) / Decimal(100)


def _fixed_discount(promo: PromoCodeModel) -> Decimal:
    return _decimal(promo.value)


def _no_fee_discount(promo: PromoCodeModel) -> Decimal:
    # Rate boosts are priced into the FX quote and bonus credits land in the
    # wallet; neither reduces the fee.
    return Decimal(0)


DISCOUNT_CALCULATORS: Dict[PromoKind, Callable[[PromoCodeModel], Decimal]] = {
    PromoKind.PERCENTAGE: _percentage_discount,
    PromoKind.FIXED: _fixed_discount,
    PromoKind.FX_BOOST: _no_fee_discount,
    PromoKind.BONUS_CREDIT: _no_fee_discount,
}


def calculate_discount(promo: PromoCodeModel) -> float:
    discount = DISCOUNT_CALCULATORS[PromoKind(promo.kind)](promo)
    if promo.max_discount is not None and discount > _decimal(promo.max_discount):
        discount = _decimal(promo.max_discount)
    return float(discount.quantize(CENT, rounding=ROUND_HALF_UP))


def format_display_text(
    promo: PromoCodeModel,
    discount: float,
    source_currency: Optional[str] = None,
    dest_currency: Optional[str] = None,
) -> str:
    kind = PromoKind(promo.kind)
    value = format_number(promo.value)
    if kind == PromoKind.PERCENTAGE:
        return f"{value}% off fees ({promo.currency} {discount:.2f} saved)"
    if kind == PromoKind.FIXED:
        return f"{promo.currency} {discount:.2f} off"
    if kind == PromoKind.FX_BOOST:
        if source_currency and dest_currency:
            return f"+{value} {dest_currency}/{source_currency} rate boost"
        return f"+{value} rate boost"
    return f"{promo.currency} {value} bonus credit"

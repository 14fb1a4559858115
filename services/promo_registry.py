"""
Promo code registry: the system of record for promo definitions, their
usage counters and the append-only redemption ledger.

Validation only reads through ``lookup`` and ``count_user_redemptions``;
``apply`` is the single mutator and records one redemption per call.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from models.sql.promo_code import PromoCodeModel
from models.sql.promo_code_redemption import PromoCodeRedemptionModel

logger = logging.getLogger(__name__)

DEFAULT_APPLY_LOCK_TIMEOUT_SECONDS = 5.0


class PromoRegistryError(Exception):
    """Base class for exceptional registry conditions"""


class PromoCodeNotFoundError(PromoRegistryError):
    def __init__(self, promo_code_id: str):
        super().__init__(f"Promo code {promo_code_id} not found")
        self.promo_code_id = promo_code_id


class DuplicatePromoCodeError(PromoRegistryError):
    def __init__(self, code: str):
        super().__init__(f"Promo code {code} already exists")
        self.code = code


class RegistryBusyError(PromoRegistryError):
    """apply() could not take the registry lock within its timeout"""


class UnknownCodePolicy(str, Enum):
    """What apply() does when the promo id does not resolve"""

    IGNORE = "ignore"
    RAISE = "raise"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def validate_discount_amount(discount_amount: float) -> float:
    amount = float(discount_amount or 0.0)
    if amount < 0:
        raise ValueError("discountAmount must not be negative")
    return amount


class PromoRegistry(ABC):
    """Storage-facing capability set shared by every registry backend"""

    def __init__(self, unknown_code_policy: UnknownCodePolicy = UnknownCodePolicy.IGNORE):
        self.unknown_code_policy = UnknownCodePolicy(unknown_code_policy)

    @abstractmethod
    def add(self, promo: PromoCodeModel) -> PromoCodeModel:
        """Register a new promo definition (seeding / administration)"""

    @abstractmethod
    def lookup(self, code: str) -> Optional[PromoCodeModel]:
        """Case-insensitive exact match on code; None when absent"""

    @abstractmethod
    def count_user_redemptions(self, user_id: str, promo_code_id: str) -> int:
        """Number of ledger entries for this user and promo"""

    @abstractmethod
    def apply(
        self,
        promo_code_id: str,
        transaction_id: str,
        user_id: str,
        discount_amount: float,
    ) -> Optional[PromoCodeRedemptionModel]:
        """
        Record one redemption: usage_count += 1, total_discount_utilized +=
        discount_amount and one ledger entry, as a single atomic unit.

        Not idempotent. Returns the new redemption, or None when the id is
        unknown and the policy is IGNORE.
        """

    @abstractmethod
    def list_codes(self) -> List[PromoCodeModel]:
        """All promo definitions, newest campaign window first"""

    @abstractmethod
    def list_redemptions(self, promo_code_id: Optional[str] = None) -> List[PromoCodeRedemptionModel]:
        """Ledger entries, optionally filtered to one promo"""

    def _handle_unknown_code(self, promo_code_id: str) -> None:
        if self.unknown_code_policy == UnknownCodePolicy.RAISE:
            raise PromoCodeNotFoundError(promo_code_id)
        logger.warning(f"Ignoring apply for unknown promo code id {promo_code_id}")


class InMemoryPromoRegistry(PromoRegistry):
    """
    Process-memory registry.

    All mutations happen under one lock; apply() waits at most
    ``lock_timeout_seconds`` for it before raising RegistryBusyError.
    Reads take the same lock so that a lookup never observes a half-applied
    redemption, and return snapshots rather than the live records.
    """

    def __init__(
        self,
        unknown_code_policy: UnknownCodePolicy = UnknownCodePolicy.IGNORE,
        lock_timeout_seconds: float = DEFAULT_APPLY_LOCK_TIMEOUT_SECONDS,
    ):
        super().__init__(unknown_code_policy)
        self.lock_timeout_seconds = lock_timeout_seconds
        self._lock = threading.Lock()
        self._codes: Dict[str, PromoCodeModel] = {}
        self._codes_by_id: Dict[str, PromoCodeModel] = {}
        self._redemptions: List[PromoCodeRedemptionModel] = []

    def add(self, promo: PromoCodeModel) -> PromoCodeModel:
        key = normalize_code(promo.code)
        with self._lock:
            if key in self._codes:
                raise DuplicatePromoCodeError(key)
            stored = promo.snapshot()
            stored.code = key
            self._codes[key] = stored
            self._codes_by_id[stored.id] = stored
            return stored.snapshot()

    def lookup(self, code: str) -> Optional[PromoCodeModel]:
        with self._lock:
            promo = self._codes.get(normalize_code(code))
            return promo.snapshot() if promo else None

    def count_user_redemptions(self, user_id: str, promo_code_id: str) -> int:
        with self._lock:
            return sum(
                1
                for redemption in self._redemptions
                if redemption.user_id == user_id and redemption.promo_code_id == promo_code_id
            )

    def apply(
        self,
        promo_code_id: str,
        transaction_id: str,
        user_id: str,
        discount_amount: float,
    ) -> Optional[PromoCodeRedemptionModel]:
        amount = validate_discount_amount(discount_amount)
        if not self._lock.acquire(timeout=self.lock_timeout_seconds):
            logger.warning(f"Timed out waiting to apply promo {promo_code_id}")
            raise RegistryBusyError(
                f"Promo registry busy, could not apply {promo_code_id} "
                f"within {self.lock_timeout_seconds}s"
            )
        try:
            promo = self._codes_by_id.get(promo_code_id)
            if promo is None:
                self._handle_unknown_code(promo_code_id)
                return None

            promo.usage_count += 1
            promo.total_discount_utilized += amount
            redemption = PromoCodeRedemptionModel(
                promo_code_id=promo_code_id,
                transaction_id=transaction_id,
                user_id=user_id,
                discount_amount=amount,
                created_at=datetime.now(timezone.utc),
            )
            self._redemptions.append(redemption)
            usage_count = promo.usage_count
        finally:
            self._lock.release()

        logger.info(
            f"Promo {promo.code} redeemed by {user_id} on {transaction_id}: "
            f"discount {amount:.2f}, usage {usage_count}"
        )
        return redemption

    def list_codes(self) -> List[PromoCodeModel]:
        with self._lock:
            promos = [promo.snapshot() for promo in self._codes.values()]
        return sorted(promos, key=lambda promo: promo.start_date, reverse=True)

    def list_redemptions(self, promo_code_id: Optional[str] = None) -> List[PromoCodeRedemptionModel]:
        with self._lock:
            return [
                redemption
                for redemption in self._redemptions
                if promo_code_id is None or redemption.promo_code_id == promo_code_id
            ]

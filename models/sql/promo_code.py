import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

# Sentinel for "no limit" on usage and budget caps.
UNLIMITED = -1


class PromoKind(str, Enum):
    PERCENTAGE = "Percentage"
    FIXED = "Fixed"
    FX_BOOST = "FX_BOOST"
    BONUS_CREDIT = "BONUS_CREDIT"


class PromoStatus(str, Enum):
    ACTIVE = "Active"
    DISABLED = "Disabled"


class PromoCodeModel(SQLModel, table=True):
    __tablename__ = "promo_codes"

    # Definition fields, set when the code is created:
    # - code: customer-entered text, unique, matched case-insensitively
    # - kind/value: discount strategy and its magnitude
    # - min_threshold/max_discount/currency: monetary rules in the promo currency
    # - usage_limit_global/budget_limit: -1 means unlimited
    # - restrictions: {"corridors": ["GBP-NGN"], "paymentMethods": [...], "affiliates": [...]}
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    code: str = Field(index=True, unique=True, nullable=False)
    kind: PromoKind = Field(nullable=False)
    value: float = Field(nullable=False)
    min_threshold: float = Field(default=0.0, nullable=False)
    max_discount: Optional[float] = Field(default=None, nullable=True)
    currency: str = Field(default="GBP", nullable=False)
    usage_limit_global: int = Field(default=UNLIMITED, nullable=False)
    usage_limit_per_user: int = Field(default=1, nullable=False)
    budget_limit: float = Field(default=UNLIMITED, nullable=False)
    start_date: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    end_date: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    status: PromoStatus = Field(default=PromoStatus.ACTIVE, nullable=False)
    restrictions: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    # Counters, only ever moved forward by a registry's apply().
    usage_count: int = Field(default=0, nullable=False)
    total_discount_utilized: float = Field(default=0.0, nullable=False)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    @property
    def corridors(self) -> list[str]:
        return list((self.restrictions or {}).get("corridors") or [])

    @property
    def payment_methods(self) -> list[str]:
        return list((self.restrictions or {}).get("paymentMethods") or [])

    @property
    def affiliates(self) -> list[str]:
        return list((self.restrictions or {}).get("affiliates") or [])

    def snapshot(self) -> "PromoCodeModel":
        """Detached copy, safe to hand out while the original keeps counting."""
        return PromoCodeModel(
            id=self.id,
            code=self.code,
            kind=PromoKind(self.kind),
            value=self.value,
            min_threshold=self.min_threshold,
            max_discount=self.max_discount,
            currency=self.currency,
            usage_limit_global=self.usage_limit_global,
            usage_limit_per_user=self.usage_limit_per_user,
            budget_limit=self.budget_limit,
            start_date=self.start_date,
            end_date=self.end_date,
            status=PromoStatus(self.status),
            restrictions={key: list(items or []) for key, items in (self.restrictions or {}).items()},
            usage_count=self.usage_count,
            total_discount_utilized=self.total_discount_utilized,
            created_at=self.created_at,
        )

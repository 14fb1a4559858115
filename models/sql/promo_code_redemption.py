import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index
from sqlmodel import Field, SQLModel

REDEMPTION_STATUS_REDEEMED = "Redeemed"


class PromoCodeRedemptionModel(SQLModel, table=True):
    __tablename__ = "promo_code_redemptions"
    # Per-user usage counting scans by (promo, user).
    __table_args__ = (Index("ix_redemption_promo_user", "promo_code_id", "user_id"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    promo_code_id: str = Field(foreign_key="promo_codes.id", nullable=False)
    transaction_id: str = Field(nullable=False)
    user_id: str = Field(nullable=False)
    discount_amount: float = Field(default=0.0, nullable=False)
    status: str = Field(default=REDEMPTION_STATUS_REDEEMED, nullable=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

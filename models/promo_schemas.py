from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.sql.promo_code import PromoCodeModel, PromoKind, PromoStatus
from models.sql.promo_code_redemption import PromoCodeRedemptionModel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ValidatePromoCodeRequest(CamelModel):
    code: str
    amount: float
    currency: Optional[str] = None
    user_id: Optional[str] = None
    source_currency: Optional[str] = None
    dest_currency: Optional[str] = None
    payment_method: Optional[str] = None


class ApplyPromoCodeRequest(CamelModel):
    code: str
    user_id: Optional[str] = None
    transaction_id: Optional[str] = None
    discount_amount: float = 0.0


class RedeemBonusRequest(CamelModel):
    amount: float = Field(gt=0)
    user_id: Optional[str] = None


class PromoCodeOut(CamelModel):
    id: str
    code: str
    kind: PromoKind
    value: float
    min_threshold: float
    max_discount: Optional[float] = None
    currency: str
    usage_limit_global: int
    usage_limit_per_user: int
    usage_count: int
    total_discount_utilized: float
    budget_limit: float
    start_date: datetime
    end_date: datetime
    status: PromoStatus
    restrictions: dict

    @classmethod
    def to_json(cls, promo: PromoCodeModel) -> dict:
        return cls.model_validate(promo).model_dump(by_alias=True, mode="json")


class PromoRedemptionOut(CamelModel):
    id: str
    promo_code_id: str
    transaction_id: str
    user_id: str
    discount_amount: float
    status: str
    created_at: datetime

    @classmethod
    def to_json(cls, redemption: PromoCodeRedemptionModel) -> dict:
        return cls.model_validate(redemption).model_dump(by_alias=True, mode="json")

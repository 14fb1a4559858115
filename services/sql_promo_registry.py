"""
SQLModel-backed promo registry.

Counters are incremented by a single UPDATE statement inside the same
transaction that inserts the redemption row, so concurrent completions never
lose increments regardless of how many workers share the database.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, create_engine, select

from models.sql.promo_code import PromoCodeModel
from models.sql.promo_code_redemption import PromoCodeRedemptionModel
from services.promo_registry import (
    DuplicatePromoCodeError,
    PromoRegistry,
    UnknownCodePolicy,
    normalize_code,
    validate_discount_amount,
)
from utils.db_utils import get_database_url_and_connect_args

logger = logging.getLogger(__name__)


def create_registry_engine(database_url: Optional[str] = None) -> Engine:
    if database_url is None:
        database_url, connect_args = get_database_url_and_connect_args()
    else:
        connect_args = {"check_same_thread": False} if "sqlite" in database_url else {}
    return create_engine(database_url, connect_args=connect_args)


def _as_utc(value: datetime) -> datetime:
    # sqlite drops tzinfo on the way back out
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _detached(promo: PromoCodeModel) -> PromoCodeModel:
    snapshot = promo.snapshot()
    snapshot.start_date = _as_utc(snapshot.start_date)
    snapshot.end_date = _as_utc(snapshot.end_date)
    snapshot.created_at = _as_utc(snapshot.created_at)
    return snapshot


class SqlPromoRegistry(PromoRegistry):
    def __init__(
        self,
        engine: Engine,
        unknown_code_policy: UnknownCodePolicy = UnknownCodePolicy.IGNORE,
    ):
        super().__init__(unknown_code_policy)
        self.engine = engine

    def create_tables(self) -> None:
        SQLModel.metadata.create_all(
            self.engine,
            tables=[PromoCodeModel.__table__, PromoCodeRedemptionModel.__table__],
        )

    def add(self, promo: PromoCodeModel) -> PromoCodeModel:
        stored = promo.snapshot()
        stored.code = normalize_code(promo.code)
        with Session(self.engine) as session:
            session.add(stored)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicatePromoCodeError(stored.code) from exc
            session.refresh(stored)
            return _detached(stored)

    def lookup(self, code: str) -> Optional[PromoCodeModel]:
        with Session(self.engine) as session:
            promo = session.exec(
                select(PromoCodeModel).where(
                    func.upper(PromoCodeModel.code) == normalize_code(code)
                )
            ).first()
            return _detached(promo) if promo else None

    def count_user_redemptions(self, user_id: str, promo_code_id: str) -> int:
        with Session(self.engine) as session:
            count = session.exec(
                select(func.count(PromoCodeRedemptionModel.id)).where(
                    PromoCodeRedemptionModel.promo_code_id == promo_code_id,
                    PromoCodeRedemptionModel.user_id == user_id,
                )
            ).one()
            return int(count or 0)

    def apply(
        self,
        promo_code_id: str,
        transaction_id: str,
        user_id: str,
        discount_amount: float,
    ) -> Optional[PromoCodeRedemptionModel]:
        amount = validate_discount_amount(discount_amount)
        with Session(self.engine) as session:
            result = session.execute(
                update(PromoCodeModel)
                .where(PromoCodeModel.id == promo_code_id)
                .values(
                    usage_count=PromoCodeModel.usage_count + 1,
                    total_discount_utilized=PromoCodeModel.total_discount_utilized + amount,
                )
            )
            if result.rowcount == 0:
                session.rollback()
                self._handle_unknown_code(promo_code_id)
                return None

            redemption = PromoCodeRedemptionModel(
                promo_code_id=promo_code_id,
                transaction_id=transaction_id,
                user_id=user_id,
                discount_amount=amount,
                created_at=datetime.now(timezone.utc),
            )
            session.add(redemption)
            session.commit()
            session.refresh(redemption)
            session.expunge(redemption)

        logger.info(
            f"Promo {promo_code_id} redeemed by {user_id} on {transaction_id}: discount {amount:.2f}"
        )
        return redemption

    def list_codes(self) -> List[PromoCodeModel]:
        with Session(self.engine) as session:
            promos = session.exec(
                select(PromoCodeModel).order_by(PromoCodeModel.start_date.desc())
            ).all()
            return [_detached(promo) for promo in promos]

    def list_redemptions(self, promo_code_id: Optional[str] = None) -> List[PromoCodeRedemptionModel]:
        with Session(self.engine) as session:
            query = select(PromoCodeRedemptionModel)
            if promo_code_id is not None:
                query = query.where(PromoCodeRedemptionModel.promo_code_id == promo_code_id)
            redemptions = session.exec(query.order_by(PromoCodeRedemptionModel.created_at)).all()
            for redemption in redemptions:
                session.expunge(redemption)
            return list(redemptions)

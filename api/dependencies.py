from fastapi import Request

from services.bonus_ledger import BonusLedger
from services.promo_evaluator import PromoEvaluator
from services.promo_registry import PromoRegistry
from utils.config_validator import PromoServiceConfig


def get_promo_registry(request: Request) -> PromoRegistry:
    return request.app.state.promo_registry


def get_promo_evaluator(request: Request) -> PromoEvaluator:
    return PromoEvaluator(request.app.state.promo_registry, clock=request.app.state.clock)


def get_bonus_ledger(request: Request) -> BonusLedger:
    return request.app.state.bonus_ledger


def get_service_config(request: Request) -> PromoServiceConfig:
    return request.app.state.config


def get_request_user_id(request: Request, user_id: str | None = None) -> str:
    """Explicit user id, else X-User-ID header, else the configured demo user"""
    raw_user_id = user_id or request.headers.get("x-user-id") or ""
    return raw_user_id.strip() or request.app.state.config.default_user_id

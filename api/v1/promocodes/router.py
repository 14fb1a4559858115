import asyncio
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request

from api.dependencies import get_promo_evaluator, get_promo_registry, get_request_user_id
from models.promo_schemas import (
    ApplyPromoCodeRequest,
    PromoCodeOut,
    PromoRedemptionOut,
    ValidatePromoCodeRequest,
)
from services.promo_evaluator import PromoEvaluator, PromoValidationRequest
from services.promo_registry import PromoCodeNotFoundError, PromoRegistry, RegistryBusyError

logger = logging.getLogger(__name__)

PROMOCODES_ROUTER = APIRouter(prefix="/api/promocodes", tags=["Promo Codes"])

PROMO_NOT_FOUND = "Promo code not found"


@PROMOCODES_ROUTER.get("")
async def list_promo_codes(registry: PromoRegistry = Depends(get_promo_registry)):
    promos = await asyncio.to_thread(registry.list_codes)
    return {"data": [PromoCodeOut.to_json(promo) for promo in promos]}


@PROMOCODES_ROUTER.post("/validate")
async def validate_promo_code(
    payload: ValidatePromoCodeRequest,
    request: Request,
    evaluator: PromoEvaluator = Depends(get_promo_evaluator),
):
    """
    Check a code against a proposed transfer. Read-only: can be called as
    often as the sender edits the form.
    """
    validation_request = PromoValidationRequest(
        code=payload.code,
        amount=payload.amount,
        currency=payload.currency,
        user_id=get_request_user_id(request, payload.user_id),
        source_currency=payload.source_currency,
        dest_currency=payload.dest_currency,
        payment_method=payload.payment_method,
    )
    result = await asyncio.to_thread(evaluator.validate, validation_request)
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.error_message)

    return {
        "valid": True,
        "appliedDiscount": result.applied_discount,
        "displayText": result.display_text,
        "promo": PromoCodeOut.to_json(result.promo),
    }


@PROMOCODES_ROUTER.post("/apply")
async def apply_promo_code(
    payload: ApplyPromoCodeRequest,
    request: Request,
    registry: PromoRegistry = Depends(get_promo_registry),
):
    """
    Record the redemption of a code for a completed transfer. Call once per
    transfer: every call counts.
    """
    promo = await asyncio.to_thread(registry.lookup, payload.code)
    if promo is None:
        raise HTTPException(status_code=404, detail=PROMO_NOT_FOUND)

    user_id = get_request_user_id(request, payload.user_id)
    transaction_id = payload.transaction_id or f"txn_{uuid.uuid4().hex[:12]}"
    try:
        redemption = await asyncio.to_thread(
            registry.apply, promo.id, transaction_id, user_id, payload.discount_amount
        )
    except PromoCodeNotFoundError:
        raise HTTPException(status_code=404, detail=PROMO_NOT_FOUND)
    except RegistryBusyError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "message": f"Promo code {promo.code} applied to {transaction_id}",
        "redemptionId": redemption.id if redemption else None,
    }


@PROMOCODES_ROUTER.get("/{code}/redemptions")
async def list_promo_redemptions(
    code: str,
    registry: PromoRegistry = Depends(get_promo_registry),
):
    promo = await asyncio.to_thread(registry.lookup, code)
    if promo is None:
        raise HTTPException(status_code=404, detail=PROMO_NOT_FOUND)
    redemptions = await asyncio.to_thread(registry.list_redemptions, promo.id)
    return {"data": [PromoRedemptionOut.to_json(redemption) for redemption in redemptions]}

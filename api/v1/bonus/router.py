from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.dependencies import get_bonus_ledger, get_request_user_id
from models.promo_schemas import RedeemBonusRequest
from services.bonus_ledger import BonusLedger

BONUS_ROUTER = APIRouter(prefix="/api/bonus", tags=["Bonus"])


@BONUS_ROUTER.get("/balance")
async def get_bonus_balance(
    request: Request,
    user_id: Optional[str] = Query(default=None, alias="userId"),
    ledger: BonusLedger = Depends(get_bonus_ledger),
):
    user_id = get_request_user_id(request, user_id)
    return {"userId": user_id, "balance": ledger.get_balance(user_id)}


@BONUS_ROUTER.post("/redeem")
async def redeem_bonus(
    payload: RedeemBonusRequest,
    request: Request,
    ledger: BonusLedger = Depends(get_bonus_ledger),
):
    user_id = get_request_user_id(request, payload.user_id)
    if not ledger.redeem(payload.amount, user_id):
        raise HTTPException(status_code=400, detail="Insufficient bonus balance")
    return {"success": True, "balance": ledger.get_balance(user_id)}

# giftcart/api/routers/wallet.py
from fastapi import APIRouter, Depends, Query

from giftcart.api.deps import get_topup_service, get_wallet_ledger
from giftcart.api.errors import as_http_error
from giftcart.domain.errors import ServiceError
from giftcart.domain.schemas import (
    TopupIn,
    TopupOut,
    TopupVerifiedOut,
    TopupVerifyIn,
    TransactionPageOut,
    WalletOut,
)
from giftcart.services.topup_service import WalletTopupService
from giftcart.services.wallet_service import WalletLedger

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("/balance", response_model=WalletOut)
def get_balance(
    user_id: int = Query(..., gt=0),
    ledger: WalletLedger = Depends(get_wallet_ledger),
):
    """
    Saldo + 10 ostatnich transakcji. Portfel powstaje przy pierwszym odczycie.
    """
    try:
        return ledger.summary(user_id)
    except ServiceError as e:
        raise as_http_error(e)


@router.get("/transactions", response_model=TransactionPageOut)
def get_transactions(
    user_id: int = Query(..., gt=0),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    ledger: WalletLedger = Depends(get_wallet_ledger),
):
    try:
        return ledger.transactions(user_id, page=page, limit=limit)
    except ServiceError as e:
        raise as_http_error(e)


@router.post("/topup", response_model=TopupOut, status_code=201)
def create_topup(
    payload: TopupIn,
    user_id: int = Query(..., gt=0),
    svc: WalletTopupService = Depends(get_topup_service),
):
    try:
        return svc.create_topup(user_id, payload.amount)
    except ServiceError as e:
        raise as_http_error(e)


@router.post("/topup/verify", response_model=TopupVerifiedOut)
def verify_topup(
    payload: TopupVerifyIn,
    user_id: int = Query(..., gt=0),
    svc: WalletTopupService = Depends(get_topup_service),
):
    try:
        return svc.verify_topup(user_id, payload.intent_id, payload.external_ref, payload.signature)
    except ServiceError as e:
        raise as_http_error(e)

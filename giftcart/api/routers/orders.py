# giftcart/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, Query

from giftcart.api.deps import get_settlement_service
from giftcart.api.errors import as_http_error
from giftcart.domain.errors import ServiceError
from giftcart.domain.schemas import OrderCreate, OrderInitiatedOut, OrderOut, SettleIn, SettlementOut
from giftcart.services.settlement_service import SettlementService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderInitiatedOut, status_code=201)
def initiate_order(
    payload: OrderCreate,
    user_id: int = Query(..., gt=0),
    svc: SettlementService = Depends(get_settlement_service),
):
    """
    Tworzy zamówienie INITIATED z bieżącego koszyka i intent płatności.
    Portfel nie jest jeszcze obciążany.
    """
    try:
        return svc.initiate(
            user_id,
            use_wallet=payload.use_wallet,
            wallet_amount=payload.wallet_amount,
            address_id=payload.address_id,
            address=payload.address,
            notes=payload.notes,
        )
    except ServiceError as e:
        raise as_http_error(e)


@router.post("/{order_id}/settle", response_model=SettlementOut)
def settle_order(
    order_id: int,
    payload: SettleIn,
    svc: SettlementService = Depends(get_settlement_service),
):
    """
    Potwierdzenie płatności od klienta. Idempotentne dla tej samej płatności.
    """
    try:
        return svc.settle(
            order_id,
            payload.intent_id,
            payload.external_ref,
            payload.signature,
            use_wallet=payload.use_wallet,
            wallet_amount=payload.wallet_amount,
        )
    except ServiceError as e:
        raise as_http_error(e)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Query(..., gt=0),
    svc: SettlementService = Depends(get_settlement_service),
):
    try:
        return svc.get_order(order_id, user_id)
    except ServiceError as e:
        raise as_http_error(e)


@router.get("", response_model=List[OrderOut])
def list_orders(
    user_id: int = Query(..., gt=0),
    svc: SettlementService = Depends(get_settlement_service),
):
    return svc.list_orders(user_id)

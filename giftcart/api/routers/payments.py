# giftcart/api/routers/payments.py
from fastapi import APIRouter, Depends

from giftcart.api.deps import get_settlement_service
from giftcart.api.errors import as_http_error
from giftcart.domain.errors import ServiceError
from giftcart.domain.schemas import SettlementOut, WebhookIn
from giftcart.services.settlement_service import SettlementService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhook", response_model=SettlementOut)
def payment_webhook(
    payload: WebhookIn,
    svc: SettlementService = Depends(get_settlement_service),
):
    """
    Potwierdzenie z bramki. Kwoty portfela tylko ze snapshotu zamówienia.
    """
    try:
        return svc.settle_by_intent(payload.intent_id, payload.external_ref, payload.signature)
    except ServiceError as e:
        raise as_http_error(e)

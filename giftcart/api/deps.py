# giftcart/api/deps.py
from fastapi import Depends
from sqlalchemy.orm import Session

from giftcart.data.database import get_db
from giftcart.services.cart_service import CartService
from giftcart.services.lock_service import LockService
from giftcart.services.notification_service import NotificationService
from giftcart.services.payment_gateway import GatewayClient, PaymentIntentGateway
from giftcart.services.product_client import ProductClient
from giftcart.services.settlement_service import SettlementService
from giftcart.services.topup_service import WalletTopupService
from giftcart.services.wallet_service import WalletLedger

_lock_service: LockService | None = None


def get_product_client() -> ProductClient:
    return ProductClient()


def get_gateway_client() -> GatewayClient:
    return GatewayClient()


def get_lock_service() -> LockService:
    # jeden pool polaczen redis na proces
    global _lock_service
    if _lock_service is None:
        _lock_service = LockService()
    return _lock_service


def get_notifier() -> NotificationService:
    return NotificationService()


def get_cart_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
) -> CartService:
    return CartService(db, product_client)


def get_wallet_ledger(db: Session = Depends(get_db)) -> WalletLedger:
    return WalletLedger(db)


def get_topup_service(
    db: Session = Depends(get_db),
    client: GatewayClient = Depends(get_gateway_client),
    lock_service: LockService = Depends(get_lock_service),
    notifier: NotificationService = Depends(get_notifier),
) -> WalletTopupService:
    return WalletTopupService(db, PaymentIntentGateway(db, client), lock_service, notifier)


def get_settlement_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
    client: GatewayClient = Depends(get_gateway_client),
    lock_service: LockService = Depends(get_lock_service),
    notifier: NotificationService = Depends(get_notifier),
) -> SettlementService:
    return SettlementService(
        db,
        product_client=product_client,
        gateway=PaymentIntentGateway(db, client),
        lock_service=lock_service,
        notifier=notifier,
    )

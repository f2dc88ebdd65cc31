# giftcart/tasks/expire.py
from giftcart.celery_worker import celery_app
from giftcart.data.database import SessionLocal
from giftcart.services.lock_service import LockService
from giftcart.services.payment_gateway import PaymentIntentGateway
from giftcart.services.product_client import ProductClient
from giftcart.services.settlement_service import SettlementService
from giftcart.utils.logging import get_logger

logger = get_logger(__name__)
lock_service = LockService()


@celery_app.task(name="giftcart.tasks.expire.expire_stale_orders_task")
def expire_stale_orders_task():
    logger.info("Expire stale orders task started")

    db = SessionLocal()
    try:
        service = SettlementService(
            db,
            product_client=ProductClient(),
            gateway=PaymentIntentGateway(db),
            lock_service=lock_service,
        )
        abandoned = service.abandon_stale_orders()
        return {"abandoned": abandoned}
    finally:
        db.close()

# giftcart/services/notification_service.py
from giftcart.celery_worker import celery_app
from giftcart.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysyłania powiadomień.
    Używa Celery do asynchronicznego przetwarzania.
    """

    @staticmethod
    def send_order_paid_notification(user_id: int, order_id: int):
        """
        Wysyła powiadomienie o opłaceniu zamówienia (po commicie rozliczenia).
        """
        send_order_paid_notification_task.delay(user_id, order_id)

    @staticmethod
    def send_wallet_topup_notification(user_id: int, amount: str):
        send_wallet_topup_notification_task.delay(user_id, amount)


@celery_app.task(name="giftcart.services.notification_service.send_order_paid_notification_task")
def send_order_paid_notification_task(user_id: int, order_id: int):
    """
    Celery task - w prawdziwym systemie wysłałby email/SMS/push.
    Teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_id} has been paid")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}


@celery_app.task(name="giftcart.services.notification_service.send_wallet_topup_notification_task")
def send_wallet_topup_notification_task(user_id: int, amount: str):
    logger.info(f"[NOTIFICATION] User {user_id}: wallet topped up with {amount}")
    return {"user_id": user_id, "amount": amount, "status": "sent"}

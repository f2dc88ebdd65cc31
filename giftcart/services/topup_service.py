# giftcart/services/topup_service.py
import uuid
from typing import Any, Dict

from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from giftcart.domain.errors import ConflictError, NotFoundError, ValidationError
from giftcart.repos.payment_intent_repo import PaymentIntentRepo
from giftcart.services.lock_service import LockService
from giftcart.services.notification_service import NotificationService
from giftcart.services.payment_gateway import PaymentIntentGateway
from giftcart.services.wallet_service import WalletLedger
from giftcart.utils.money import to_money
from giftcart.utils.settings import CURRENCY, MIN_PAYABLE_AMOUNT, SETTLEMENT_LOCK_TTL_SECONDS
from giftcart.utils.logging import get_logger

logger = get_logger(__name__)

WALLET_TOPUP = "WALLET_TOPUP"


class WalletTopupService:
    """
    Doladowanie portfela przez bramke:
    create_topup -> intent WALLET_TOPUP, verify_topup -> podpis + credit (raz na intent).
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentIntentGateway,
        lock_service: LockService,
        notifier: NotificationService | None = None,
        currency: str = CURRENCY,
    ):
        self.db = db
        self.intents = PaymentIntentRepo(db)
        self.wallet = WalletLedger(db)
        self.gateway = gateway
        self.lock_service = lock_service
        self.notifier = notifier or NotificationService()
        self.currency = currency

    def create_topup(self, user_id: int, amount) -> Dict[str, Any]:
        amount = to_money(amount)
        if amount < MIN_PAYABLE_AMOUNT:
            raise ValidationError(f"Top-up amount must be at least {MIN_PAYABLE_AMOUNT}", code="invalid_amount")

        receipt = f"wallet_rcpt_{uuid.uuid4().hex[:16]}"
        try:
            intent_id = self.gateway.create_intent(
                amount,
                self.currency,
                receipt,
                {"user_id": str(user_id), "purpose": "wallet_topup"},
                user_id=user_id,
                purpose=WALLET_TOPUP,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return {
            "intent_id": intent_id,
            "amount": amount,
            "currency": self.currency,
            "key_id": self.gateway.key_id,
        }

    def verify_topup(self, user_id: int, intent_id: str, external_ref: str, signature: str) -> Dict[str, Any]:
        self.gateway.verify_confirmation(intent_id, external_ref, signature)

        key = LockService.intent_key(intent_id)
        token = self.lock_service.new_token()
        if not self.lock_service.acquire_waiting(key, token, SETTLEMENT_LOCK_TTL_SECONDS):
            raise ConflictError("Top-up verification already in progress", code="settlement_in_progress")

        try:
            return self._verify(user_id, intent_id, external_ref)
        finally:
            try:
                self.lock_service.release(key, token)
            except RedisError as e:
                logger.warning(f"Failed to release top-up lock {key}: {e}")

    def _verify(self, user_id: int, intent_id: str, external_ref: str) -> Dict[str, Any]:
        self.wallet.ensure_wallet(user_id)

        try:
            intent = self.intents.get_intent(intent_id, for_update=True)
            if not intent or intent.user_id != user_id or intent.purpose != WALLET_TOPUP:
                raise NotFoundError("Top-up not found", code="topup_not_found")

            # ten sam intent drugi raz: bez ponownego uznania portfela
            if intent.status == "CONFIRMED":
                if intent.external_ref != external_ref:
                    raise ConflictError("Top-up already confirmed with a different payment",
                                        code="already_settled_with_other_payment")
                self.db.rollback()
                return {"intent_id": intent_id, "balance": self.wallet.balance(user_id), "already_processed": True}
            if intent.status != "CREATED":
                raise ConflictError(f"Top-up is {intent.status}", code="topup_not_confirmable")

            amount = to_money(intent.amount)
            self.wallet.credit(user_id, amount, "Wallet top-up", reference=f"topup:{intent_id}")
            intent.status = "CONFIRMED"
            intent.external_ref = external_ref
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Wallet of user {user_id} topped up with {amount} (intent {intent_id})")

        try:
            self.notifier.send_wallet_topup_notification(user_id, str(amount))
        except Exception as e:
            logger.warning(f"Failed to enqueue top-up notification for user {user_id}: {e}")

        return {"intent_id": intent_id, "balance": self.wallet.balance(user_id), "already_processed": False}

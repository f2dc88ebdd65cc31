# giftcart/services/payment_gateway.py
import hashlib
import hmac

import requests
from sqlalchemy.orm import Session

from giftcart.data.models.payment_intent import PaymentIntentModel
from giftcart.domain.errors import PaymentGatewayError, SignatureMismatchError
from giftcart.repos.payment_intent_repo import PaymentIntentRepo
from giftcart.utils.money import from_minor_units, to_minor_units, to_money
from giftcart.utils.retry import http_retry
from giftcart.utils.settings import (
    PAYMENT_GATEWAY_URL,
    PAYMENT_KEY_ID,
    PAYMENT_KEY_SECRET,
)
from giftcart.utils.logging import get_logger

logger = get_logger(__name__)


class GatewayClient:
    """HTTP do zewnetrznej bramki platnosci (API w stylu Razorpay /orders)."""

    def __init__(self, base_url: str | None = None, key_id: str | None = None,
                 key_secret: str | None = None, timeout: int = 5):
        self.base_url = (base_url or PAYMENT_GATEWAY_URL).rstrip("/")
        self.key_id = key_id if key_id is not None else PAYMENT_KEY_ID
        self.key_secret = key_secret if key_secret is not None else PAYMENT_KEY_SECRET
        self.timeout = timeout

    @http_retry()
    def create_order(self, amount_minor: int, currency: str, receipt: str, notes: dict) -> dict:
        url = f"{self.base_url}/orders"
        logger.info(f"GatewayClient POST {url} receipt={receipt}")

        resp = requests.post(
            url,
            json={"amount": amount_minor, "currency": currency, "receipt": receipt, "notes": notes},
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()


def compute_signature(secret: str, intent_id: str, external_ref: str) -> str:
    message = f"{intent_id}|{external_ref}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class PaymentIntentGateway:
    """
    Adapter bramki:
    - create_intent: intent w bramce + lokalny wiersz CREATED (bez commita)
    - verify_confirmation: czysta weryfikacja HMAC, zero zmian stanu
    """

    def __init__(self, db: Session, client: GatewayClient | None = None, secret: str | None = None):
        self.repo = PaymentIntentRepo(db)
        self.client = client or GatewayClient()
        self.secret = secret if secret is not None else PAYMENT_KEY_SECRET

    @property
    def key_id(self) -> str | None:
        return getattr(self.client, "key_id", None)

    def create_intent(self, amount, currency: str, receipt_ref: str, metadata: dict,
                      user_id: int, purpose: str = "ORDER") -> str:
        amount = to_money(amount)
        amount_minor = to_minor_units(amount)

        try:
            created = self.client.create_order(amount_minor, currency, receipt_ref, metadata)
        except requests.RequestException as e:
            logger.error(f"Payment gateway call failed for receipt {receipt_ref}: {e}")
            raise PaymentGatewayError() from e

        intent_id = created.get("id")
        # nie ufamy odpowiedzi bez sprawdzenia kwoty i waluty
        if not intent_id or created.get("amount") != amount_minor or created.get("currency") != currency:
            logger.error(f"Payment gateway returned unexpected intent for receipt {receipt_ref}: {created}")
            raise PaymentGatewayError()

        self.repo.create_intent(
            PaymentIntentModel(
                intent_id=intent_id,
                purpose=purpose,
                user_id=user_id,
                amount=from_minor_units(amount_minor),
                currency=currency,
                receipt=receipt_ref,
                status="CREATED",
            )
        )
        logger.info(f"Payment intent {intent_id} created for {amount} {currency} ({purpose})")
        return intent_id

    def verify_confirmation(self, intent_id: str, external_ref: str, supplied_signature: str) -> bool:
        expected = compute_signature(self.secret, intent_id, external_ref)
        supplied = (supplied_signature or "").encode()
        if not self.secret or not hmac.compare_digest(expected.encode(), supplied):
            logger.warning(f"[SECURITY] Payment confirmation signature mismatch for intent {intent_id}")
            raise SignatureMismatchError()
        return True

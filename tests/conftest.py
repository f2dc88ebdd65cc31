import os
import uuid

# musi byc ustawione przed pierwszym importem giftcart.*
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["PAYMENT_KEY_ID"] = "rzp_test_key"
os.environ["PAYMENT_KEY_SECRET"] = "test_secret"
os.environ["TAX_RATE"] = "0"
os.environ["DELIVERY_FEE_POLICY"] = "per_product"
os.environ["MIN_PAYABLE_AMOUNT"] = "1.00"

from datetime import timedelta
from decimal import Decimal

import pytest
import requests

import giftcart.data.models  # noqa: F401
from giftcart.data.database import Base, SessionLocal, engine
from giftcart.data.models.coupon import CouponModel
from giftcart.domain.errors import NotFoundError
from giftcart.services.cart_service import CartService
from giftcart.services.payment_gateway import PaymentIntentGateway, compute_signature
from giftcart.services.settlement_service import SettlementService
from giftcart.services.topup_service import WalletTopupService
from giftcart.services.wallet_service import WalletLedger
from giftcart.utils.money import utcnow

SECRET = "test_secret"

PRODUCTS = {
    1: {"id": 1, "price": 500.00, "discounted_price": None, "delivery_fee": 0.00, "stock": 10,
        "categories": ["mugs"], "flash_sale_price": None, "flash_sale_ends_at": None},
    2: {"id": 2, "price": 300.00, "discounted_price": 250.00, "delivery_fee": 0.00, "stock": 5,
        "categories": ["frames"], "flash_sale_price": None, "flash_sale_ends_at": None},
    3: {"id": 3, "price": 1000.00, "discounted_price": 900.00, "delivery_fee": 50.00, "stock": 3,
        "categories": ["frames"], "flash_sale_price": 700.00, "flash_sale_ends_at": "2099-01-01T00:00:00+00:00"},
}


class FakeCatalog:
    def __init__(self, products=None):
        self.products = {pid: dict(p) for pid, p in (products or PRODUCTS).items()}

    def get_product(self, product_id: int) -> dict:
        if product_id not in self.products:
            raise NotFoundError(f"Product {product_id} not found", code="product_not_found")
        return dict(self.products[product_id])


class InMemoryLockService:
    def __init__(self):
        self.held = {}
        self.acquired = []

    @staticmethod
    def new_token() -> str:
        return uuid.uuid4().hex

    def acquire(self, key, token, ttl) -> bool:
        if key in self.held:
            return False
        self.held[key] = token
        self.acquired.append(key)
        return True

    def acquire_waiting(self, key, token, ttl, attempts=None) -> bool:
        return self.acquire(key, token, ttl)

    def release(self, key, token) -> bool:
        if self.held.get(key) == token:
            del self.held[key]
            return True
        return False


class FakeGatewayClient:
    key_id = "rzp_test_key"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.created = []

    def create_order(self, amount_minor, currency, receipt, notes):
        if self.fail:
            raise requests.ConnectionError("gateway unreachable")
        intent_id = f"order_test{len(self.created) + 1:04d}"
        self.created.append({"id": intent_id, "amount": amount_minor, "currency": currency,
                             "receipt": receipt, "notes": notes})
        return {"id": intent_id, "amount": amount_minor, "currency": currency, "receipt": receipt}


class RecordingNotifier:
    def __init__(self):
        self.paid = []
        self.topups = []

    def send_order_paid_notification(self, user_id, order_id):
        self.paid.append((user_id, order_id))

    def send_wallet_topup_notification(self, user_id, amount):
        self.topups.append((user_id, amount))


def sign(intent_id: str, external_ref: str) -> str:
    return compute_signature(SECRET, intent_id, external_ref)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def locks():
    return InMemoryLockService()


@pytest.fixture
def gateway_client():
    return FakeGatewayClient()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def gateway(db, gateway_client):
    return PaymentIntentGateway(db, gateway_client, secret=SECRET)


@pytest.fixture
def carts(db, catalog):
    return CartService(db, catalog)


@pytest.fixture
def ledger(db):
    return WalletLedger(db)


@pytest.fixture
def settlement(db, catalog, gateway, locks, notifier):
    return SettlementService(db, product_client=catalog, gateway=gateway, lock_service=locks, notifier=notifier)


@pytest.fixture
def topups(db, gateway, locks, notifier):
    return WalletTopupService(db, gateway, locks, notifier)


@pytest.fixture
def make_coupon(db):
    def _make(**overrides):
        now = utcnow()
        data = {
            "code": "SAVE10",
            "discount_type": "PERCENTAGE",
            "discount_value": Decimal("10"),
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=1),
            "is_active": True,
            "applicable_user_ids": [],
            "applicable_product_ids": [],
            "applicable_categories": [],
        }
        data.update(overrides)
        coupon = CouponModel(**data)
        db.add(coupon)
        db.commit()
        return coupon

    return _make


@pytest.fixture
def address():
    return {
        "full_name": "Asha Rao",
        "phone": "9876543210",
        "line1": "12 MG Road",
        "city": "Bengaluru",
        "state": "KA",
        "country": "IN",
        "pin_code": "560001",
    }

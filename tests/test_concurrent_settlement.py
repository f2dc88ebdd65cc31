import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from giftcart.data.database import Base
from giftcart.data.models.coupon import CouponModel
from giftcart.data.models.coupon_usage import CouponUsageModel
from giftcart.data.models.order import OrderModel
from giftcart.data.models.order_item import OrderItemModel
from giftcart.data.models.wallet_transaction import WalletTransactionModel
from giftcart.domain.errors import IneligibleError
from giftcart.services.cart_service import CartService
from giftcart.services.payment_gateway import PaymentIntentGateway
from giftcart.services.settlement_service import SettlementService
from giftcart.services.wallet_service import DEBIT, WalletLedger
from giftcart.utils.money import utcnow
from tests.conftest import SECRET, FakeCatalog, FakeGatewayClient, RecordingNotifier, sign

USER = 41


class ThreadLockService:
    """Blokujacy odpowiednik LockService dla watkow jednego procesu."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}
        self._tokens = {}

    @staticmethod
    def new_token() -> str:
        return uuid.uuid4().hex

    def _lock(self, key) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    def acquire(self, key, token, ttl) -> bool:
        if not self._lock(key).acquire(blocking=False):
            return False
        self._tokens[key] = token
        return True

    def acquire_waiting(self, key, token, ttl, attempts=None) -> bool:
        if not self._lock(key).acquire(timeout=10):
            return False
        self._tokens[key] = token
        return True

    def release(self, key, token) -> bool:
        if self._tokens.get(key) != token:
            return False
        del self._tokens[key]
        self._lock(key).release()
        return True


@pytest.fixture
def session_factory(tmp_path):
    # jedno polaczenie w puli: transakcje watkow ida po kolei, jak pod blokada wiersza
    engine = create_engine(
        f"sqlite:///{tmp_path / 'settlement.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        pool_size=1,
        max_overflow=0,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False)
    finally:
        engine.dispose()


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def thread_locks():
    return ThreadLockService()


def build_settlement(session, catalog, locks):
    gateway = PaymentIntentGateway(session, FakeGatewayClient(), secret=SECRET)
    return SettlementService(session, product_client=catalog, gateway=gateway, lock_service=locks,
                             notifier=RecordingNotifier())


def run_concurrently(session_factory, catalog, locks, calls):
    barrier = threading.Barrier(len(calls))

    def _run(call):
        order_id, intent_id, ref = call
        session = session_factory()
        try:
            service = build_settlement(session, catalog, locks)
            barrier.wait()
            return service.settle(order_id, intent_id, ref, sign(intent_id, ref))
        except Exception as e:
            return e
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(_run, calls))


def test_same_confirmation_delivered_twice_at_once(session_factory, catalog, thread_locks, address):
    setup = session_factory()
    try:
        WalletLedger(setup).credit(USER, "500", "Top-up")
        setup.commit()
        CartService(setup, catalog).add_item(USER, 1, 2)
        initiated = build_settlement(setup, catalog, thread_locks).initiate(
            USER, use_wallet=True, wallet_amount=Decimal("300"), address=address,
        )
    finally:
        setup.close()

    call = (initiated["order_id"], initiated["intent_id"], "pay_0001")
    results = run_concurrently(session_factory, catalog, thread_locks, [call, call])

    assert not [r for r in results if isinstance(r, Exception)]
    assert sorted(r["already_settled"] for r in results) == [False, True]

    check = session_factory()
    try:
        debits = check.query(WalletTransactionModel).filter_by(type=DEBIT).count()
        assert debits == 1
        assert check.query(OrderItemModel).count() == 1
        assert WalletLedger(check).balance(USER) == Decimal("200.00")
    finally:
        check.close()


def test_two_orders_racing_for_single_use_coupon(session_factory, catalog, thread_locks, address):
    setup = session_factory()
    try:
        now = utcnow()
        setup.add(CouponModel(
            code="ONCE",
            discount_type="PERCENTAGE",
            discount_value=Decimal("10"),
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=1),
            is_active=True,
            per_user_limit=1,
            applicable_user_ids=[],
            applicable_product_ids=[],
            applicable_categories=[],
        ))
        setup.commit()

        carts = CartService(setup, catalog)
        carts.add_item(USER, 1, 2)
        carts.apply_coupon(USER, "ONCE")
        service = build_settlement(setup, catalog, thread_locks)
        first = service.initiate(USER, address=address)
        second = service.initiate(USER, address=address)
    finally:
        setup.close()

    results = run_concurrently(session_factory, catalog, thread_locks, [
        (first["order_id"], first["intent_id"], "pay_a"),
        (second["order_id"], second["intent_id"], "pay_b"),
    ])

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], IneligibleError)
    assert failures[0].code == "per_user_limit_reached"

    check = session_factory()
    try:
        assert check.query(CouponUsageModel).count() == 1
        statuses = sorted(o.status for o in check.query(OrderModel).all())
        assert statuses == ["INITIATED", "PAID"]
    finally:
        check.close()

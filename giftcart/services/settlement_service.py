# giftcart/services/settlement_service.py
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from giftcart.data.models.order import OrderModel
from giftcart.data.models.order_item import OrderItemModel
from giftcart.domain.customization import summarize_customization
from giftcart.domain.errors import (
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from giftcart.domain.schemas import ShippingAddressIn
from giftcart.repos.address_repo import AddressRepo
from giftcart.repos.cart_repo import CartRepo
from giftcart.repos.coupon_repo import CouponRepo
from giftcart.repos.order_repo import OrderRepo
from giftcart.repos.payment_intent_repo import PaymentIntentRepo
from giftcart.services.cart_service import CartService, parse_datetime
from giftcart.services.coupon_service import CouponEvaluator
from giftcart.services.lock_service import LockService
from giftcart.services.notification_service import NotificationService
from giftcart.services.payment_gateway import PaymentIntentGateway
from giftcart.services.pricing import PricingPolicy, resolve_unit_price
from giftcart.services.product_client import ProductClient
from giftcart.services.wallet_service import WalletLedger
from giftcart.utils.money import ZERO, to_money, utcnow
from giftcart.utils.settings import (
    CURRENCY,
    MIN_PAYABLE_AMOUNT,
    ORDER_TTL_SECONDS,
    SETTLEMENT_LOCK_TTL_SECONDS,
)
from giftcart.utils.logging import get_logger

logger = get_logger(__name__)

INITIATED = "INITIATED"
PAID = "PAID"
ABANDONED = "ABANDONED"


class SettlementService:
    """
    Koordynator rozliczen zamowien: INITIATED -> PAID.

    initiate: snapshot kwot/adresu/personalizacji + intent w bramce (portfel nie jest jeszcze obciazany)
    settle:   weryfikacja podpisu, potem pod lockiem zamowienia jedna transakcja:
              debit portfela, PAID, OrderItems, CouponUsage, czyszczenie koszyka.
              Albo wszystko, albo nic - zamowienie zostaje INITIATED do ponowienia.
    """

    def __init__(
        self,
        db: Session,
        product_client: ProductClient,
        gateway: PaymentIntentGateway,
        lock_service: LockService,
        notifier: NotificationService | None = None,
        policy: PricingPolicy | None = None,
        currency: str = CURRENCY,
    ):
        self.db = db
        self.orders = OrderRepo(db)
        self.intents = PaymentIntentRepo(db)
        self.addresses = AddressRepo(db)
        self.cart_repo = CartRepo(db)
        self.coupons = CouponRepo(db)
        self.evaluator = CouponEvaluator(db)
        self.wallet = WalletLedger(db)
        self.carts = CartService(db, product_client, policy)
        self.product_client = product_client
        self.gateway = gateway
        self.lock_service = lock_service
        self.notifier = notifier or NotificationService()
        self.currency = currency

    # =====================================================
    # INITIATE
    # =====================================================
    def initiate(
        self,
        user_id: int,
        use_wallet: bool = False,
        wallet_amount=ZERO,
        address_id: int | None = None,
        address=None,
        notes: str | None = None,
    ) -> Dict[str, Any]:
        now = utcnow()
        shipping_address = self._resolve_address(user_id, address_id, address)

        wallet_amount = to_money(wallet_amount or 0)
        if not use_wallet and wallet_amount > ZERO:
            raise ValidationError("wallet_amount requires use_wallet", code="wallet_not_selected")
        if use_wallet and wallet_amount <= ZERO:
            raise ValidationError("wallet_amount must be greater than 0", code="invalid_wallet_amount")

        priced = self.carts.price_cart(user_id, now)
        if not priced.cart:
            raise NotFoundError("Cart not found", code="cart_not_found")
        if not priced.items:
            raise ValidationError("Your cart is empty", code="cart_empty")
        if priced.eligibility is not None:
            priced.eligibility.raise_if_ineligible()

        self._check_stock(priced)

        total = priced.summary.total
        if wallet_amount > total:
            raise ValidationError("wallet_amount exceeds order total", code="wallet_amount_exceeds_total")

        # tylko odczyt - obciazenie dopiero przy settle
        if use_wallet and self.wallet.balance(user_id) < wallet_amount:
            raise InsufficientBalanceError()

        payable = to_money(total - wallet_amount)
        if payable < MIN_PAYABLE_AMOUNT:
            raise ValidationError(
                f"Amount payable through the gateway must be at least {MIN_PAYABLE_AMOUNT}",
                code="payable_below_minimum",
            )

        coupon = priced.coupon if priced.eligibility and priced.eligibility.eligible else None
        receipt = f"order_rcpt_{uuid.uuid4().hex[:16]}"

        try:
            # do bramki idzie tylko czesc niepokryta portfelem
            intent_id = self.gateway.create_intent(
                payable,
                self.currency,
                receipt,
                {"user_id": str(user_id), "purpose": "order"},
                user_id=user_id,
                purpose="ORDER",
            )

            order = self.orders.create_order(
                OrderModel(
                    user_id=user_id,
                    status=INITIATED,
                    currency=self.currency,
                    subtotal=priced.summary.subtotal,
                    discount_amount=priced.summary.discount,
                    tax_amount=priced.summary.tax,
                    delivery_fee=priced.summary.delivery_fee,
                    total_amount=total,
                    wallet_used=bool(use_wallet),
                    wallet_amount=wallet_amount,
                    payable_amount=payable,
                    coupon_id=coupon.id if coupon else None,
                    coupon_code=coupon.code if coupon else None,
                    shipping_address=shipping_address,
                    customization_metadata=self._customization_metadata(priced.items),
                    line_snapshot=self._line_snapshot(priced.items, priced.lines),
                    notes=notes,
                    intent_id=intent_id,
                    created_at=now,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Order {order.id} initiated for user {user_id}: total {total}, "
            f"wallet {wallet_amount}, gateway {payable} (intent {intent_id})"
        )

        return {
            "order_id": order.id,
            "intent_id": intent_id,
            "amount": payable,
            "currency": self.currency,
            "total": total,
            "wallet_amount": wallet_amount,
            "key_id": self.gateway.key_id,
        }

    # =====================================================
    # SETTLE
    # =====================================================
    def settle(
        self,
        order_id: int,
        intent_id: str,
        external_ref: str,
        signature: str,
        use_wallet: bool | None = None,
        wallet_amount=None,
    ) -> Dict[str, Any]:
        # 1. podpis przed czymkolwiek innym, przy bledzie stan bez zmian
        self.gateway.verify_confirmation(intent_id, external_ref, signature)
        return self._settle_locked(order_id, intent_id, external_ref, signature, use_wallet, wallet_amount)

    def settle_by_intent(self, intent_id: str, external_ref: str, signature: str) -> Dict[str, Any]:
        """Webhook bramki - wartosci portfela biore wylacznie ze snapshotu zamowienia."""
        self.gateway.verify_confirmation(intent_id, external_ref, signature)

        order = self.orders.get_order_by_intent(intent_id)
        if not order:
            raise NotFoundError("Order not found", code="order_not_found")
        return self._settle_locked(order.id, intent_id, external_ref, signature, None, None)

    def _settle_locked(self, order_id, intent_id, external_ref, signature, use_wallet, wallet_amount):
        key = LockService.order_key(order_id)
        token = self.lock_service.new_token()

        # zdublowany webhook czeka na pierwszy i dostaje ten sam wynik
        if not self.lock_service.acquire_waiting(key, token, SETTLEMENT_LOCK_TTL_SECONDS):
            raise ConflictError("Settlement already in progress, retry later", code="settlement_in_progress")

        try:
            return self._settle(order_id, intent_id, external_ref, signature, use_wallet, wallet_amount)
        finally:
            try:
                self.lock_service.release(key, token)
            except RedisError as e:
                logger.warning(f"Failed to release settlement lock {key}: {e}")

    def _settle(self, order_id, intent_id, external_ref, signature, use_wallet, wallet_amount):
        current = self.orders.get_order(order_id)
        if not current:
            raise NotFoundError("Order not found", code="order_not_found")
        if current.wallet_used:
            # leniwe utworzenie portfela commituje, wiec przed jednostka atomowa
            self.wallet.ensure_wallet(current.user_id)

        try:
            # 2. status zawsze sprawdzany na nowo, pod blokada wiersza
            order = self.orders.lock_order(order_id)
            self._check_settleable(order, intent_id, use_wallet, wallet_amount)

            if order.status == PAID:
                self.db.rollback()
                if order.payment_ref == external_ref:
                    logger.info(f"Order {order_id} already settled with {external_ref}, returning stored result")
                    return self._result(order, already_settled=True)
                raise ConflictError("Order already paid with a different payment",
                                    code="already_settled_with_other_payment")

            now = utcnow()
            debited = ZERO

            # 3. portfel
            if order.wallet_used and to_money(order.wallet_amount) > ZERO:
                self.wallet.debit(
                    order.user_id,
                    order.wallet_amount,
                    f"Payment for order #{order.id}",
                    reference=f"order:{order.id}",
                )
                debited = to_money(order.wallet_amount)

            # 4. PAID (compare-and-set na statusie)
            changed = self.orders.transition_status(order.id, INITIATED, {
                "status": PAID,
                "payment_ref": external_ref,
                "payment_signature": signature,
                "paid_at": now,
            })
            if changed == 0:
                raise ConflictError("Order is no longer awaiting payment", code="order_not_settleable")

            intent = self.intents.get_intent(intent_id, for_update=True)
            if intent:
                intent.status = "CONFIRMED"
                intent.external_ref = external_ref

            # 5. pozycje zamowienia po cenach z momentu rozliczenia
            item_count = self._materialize_items(order, now)

            # 6. uzycie kuponu - limity liczone z tabeli uzyc w tej samej transakcji
            if order.coupon_id is not None:
                coupon = self.coupons.lock_coupon(order.coupon_id)
                if coupon:
                    self.evaluator.check_limits(coupon, order.user_id)
                    self.coupons.add_usage(coupon.id, order.user_id, order.id)

            # 7. koszyk
            cart = self.cart_repo.get_cart_by_user(order.user_id)
            if cart:
                self.cart_repo.clear_items(cart.id)
                self.cart_repo.reset_cart(cart.id)

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Settlement of order {order_id} rolled back: {e.__class__.__name__}: {e}")
            raise

        logger.info(f"Order {order_id} PAID via {external_ref}: {item_count} items, wallet debited {debited}")

        try:
            self.notifier.send_order_paid_notification(order.user_id, order.id)
        except Exception as e:
            logger.warning(f"Failed to enqueue paid notification for order {order_id}: {e}")

        return {
            "order_id": order.id,
            "status": PAID,
            "payment_ref": external_ref,
            "wallet_debited": debited,
            "item_count": item_count,
            "already_settled": False,
        }

    def _check_settleable(self, order: OrderModel | None, intent_id: str, use_wallet, wallet_amount):
        if not order:
            raise NotFoundError("Order not found", code="order_not_found")
        if order.intent_id != intent_id:
            raise ValidationError("Payment does not belong to this order", code="intent_mismatch")
        if order.status not in (INITIATED, PAID):
            raise ConflictError(f"Order is {order.status}, cannot be settled", code="order_not_settleable")

        # klient nie moze zmienic kwoty z portfela po inicjacji
        if use_wallet is not None:
            supplied = to_money(wallet_amount or 0) if use_wallet else ZERO
            expected = to_money(order.wallet_amount) if order.wallet_used else ZERO
            if bool(use_wallet) != bool(order.wallet_used) or supplied != expected:
                raise ValidationError("Wallet usage does not match the order", code="wallet_mismatch")

    def _materialize_items(self, order: OrderModel, now: datetime) -> int:
        cart = self.cart_repo.get_cart_by_user(order.user_id)
        cart_items = self.cart_repo.get_cart_items(cart.id) if cart else []

        if cart_items:
            sources = [
                {
                    "product_id": i.product_id,
                    "quantity": i.quantity,
                    "customization": i.customization,
                    "flash_sale_price": i.flash_sale_price,
                    "flash_sale_ends_at": i.flash_sale_ends_at,
                }
                for i in cart_items
            ]
        else:
            logger.warning(f"Cart of user {order.user_id} is empty at settlement, using snapshot of order {order.id}")
            sources = order.line_snapshot or []

        snapshot_prices = {
            line["product_id"]: line.get("unit_price") for line in (order.line_snapshot or [])
        }
        products = self._load_settlement_products(order, [s["product_id"] for s in sources], snapshot_prices)
        self._check_settlement_stock(sources, products)

        subtotal = ZERO
        for source in sources:
            product = products.get(source["product_id"])
            if product is None:
                unit_price = to_money(snapshot_prices[source["product_id"]])
            else:
                unit_price = resolve_unit_price(
                    product,
                    source.get("flash_sale_price"),
                    parse_datetime(source.get("flash_sale_ends_at")),
                    now,
                )
            line_total = to_money(unit_price * source["quantity"])
            subtotal += line_total
            self.orders.add_item(
                OrderItemModel(
                    order_id=order.id,
                    product_id=source["product_id"],
                    quantity=source["quantity"],
                    unit_price=unit_price,
                    line_total=line_total,
                    customization=source.get("customization"),
                )
            )

        if to_money(subtotal) != to_money(order.subtotal):
            logger.warning(
                f"Order {order.id}: settlement-time subtotal {subtotal} differs from snapshot {order.subtotal}"
            )

        self.db.flush()
        return len(sources)

    def _load_settlement_products(self, order: OrderModel, product_ids, snapshot_prices) -> Dict[int, dict | None]:
        """
        Produkty do rozliczenia. Produkt usuniety z katalogu po inicjacji
        dostaje None i cene ze snapshotu - oplacone zamowienie musi sie dac rozliczyc.
        """
        products: Dict[int, dict | None] = {}
        for product_id in product_ids:
            if product_id in products:
                continue
            try:
                products[product_id] = self.product_client.get_product(product_id)
            except NotFoundError:
                if snapshot_prices.get(product_id) is None:
                    raise
                logger.warning(
                    f"Product {product_id} no longer in catalog, order {order.id} uses snapshot price"
                )
                products[product_id] = None
        return products

    @staticmethod
    def _check_settlement_stock(sources, products):
        wanted: Dict[int, int] = {}
        for source in sources:
            wanted[source["product_id"]] = wanted.get(source["product_id"], 0) + source["quantity"]
        for product_id, quantity in wanted.items():
            product = products.get(product_id)
            stock = product.get("stock") if product else None
            if stock is not None and quantity > stock:
                raise ValidationError(
                    f"Only {stock} items of product {product_id} available in stock",
                    code="insufficient_stock",
                )

    # =====================================================
    # REAPER
    # =====================================================
    def abandon_stale_orders(self, older_than: timedelta | None = None, now: datetime | None = None) -> int:
        """
        Porzucone zamowienia INITIATED -> ABANDONED, intent -> FAILED.
        Ten sam lock co settle, wiec nie ma wyscigu z rozliczeniem.
        """
        if now is None:
            now = utcnow()
        if older_than is None:
            older_than = timedelta(seconds=ORDER_TTL_SECONDS)
        # timedelta(0) jest poprawnym progiem, nie "brak wartosci"
        cutoff = now - older_than

        stale_ids = self.orders.find_stale_ids(cutoff)
        self.db.rollback()

        abandoned = 0
        for order_id in stale_ids:
            key = LockService.order_key(order_id)
            token = self.lock_service.new_token()
            if not self.lock_service.acquire(key, token, SETTLEMENT_LOCK_TTL_SECONDS):
                logger.info(f"Order {order_id} is being settled, skipping")
                continue

            try:
                order = self.orders.lock_order(order_id)
                if order and self.orders.transition_status(order_id, INITIATED, {"status": ABANDONED}):
                    intent = self.intents.get_intent(order.intent_id, for_update=True)
                    if intent and intent.status == "CREATED":
                        intent.status = "FAILED"
                    abandoned += 1
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            finally:
                try:
                    self.lock_service.release(key, token)
                except RedisError as e:
                    logger.warning(f"Failed to release settlement lock {key}: {e}")

        logger.info(f"Abandoned {abandoned} stale orders created before {cutoff.isoformat()}")
        return abandoned

    # =====================================================
    # QUERY
    # =====================================================
    def get_order(self, order_id: int, user_id: int) -> Dict[str, Any]:
        order = self.orders.get_order(order_id)
        if not order or order.user_id != user_id:
            raise NotFoundError("Order not found", code="order_not_found")
        return self._order_dict(order)

    def list_orders(self, user_id: int) -> List[Dict[str, Any]]:
        return [self._order_dict(o) for o in self.orders.list_orders(user_id)]

    # =====================================================
    # HELPERS
    # =====================================================
    def _resolve_address(self, user_id: int, address_id: int | None, address) -> dict:
        if address_id is not None:
            saved = self.addresses.get_address(address_id, user_id)
            if not saved:
                raise NotFoundError("Address not found", code="address_not_found")
            # kopia pol, nie referencja - pozniejsza edycja adresu nie zmienia zamowienia
            return {
                "full_name": saved.full_name,
                "phone": saved.phone,
                "line1": saved.line1,
                "line2": saved.line2,
                "city": saved.city,
                "state": saved.state,
                "country": saved.country,
                "pin_code": saved.pin_code,
            }

        if address is None:
            raise ValidationError("Shipping address is required", code="address_required")
        try:
            parsed = address if isinstance(address, ShippingAddressIn) else ShippingAddressIn.model_validate(address)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid shipping address: {e.error_count()} error(s)", code="invalid_address")
        return parsed.model_dump()

    def _check_stock(self, priced):
        wanted: Dict[int, int] = {}
        for item in priced.items:
            wanted[item.product_id] = wanted.get(item.product_id, 0) + item.quantity
        for product_id, quantity in wanted.items():
            stock = priced.products[product_id].get("stock")
            if stock is not None and quantity > stock:
                raise ValidationError(
                    f"Only {stock} items of product {product_id} available in stock",
                    code="insufficient_stock",
                )

    @staticmethod
    def _customization_metadata(items) -> list:
        metadata = []
        for item in items:
            summary = summarize_customization(item.customization)
            if summary:
                metadata.append({"product_id": item.product_id, "cart_item_id": item.id, **summary})
        return metadata

    @staticmethod
    def _line_snapshot(items, lines) -> list:
        return [
            {
                "product_id": item.product_id,
                "quantity": item.quantity,
                "unit_price": str(line.unit_price),
                "custom_template_id": item.custom_template_id,
                "customization": item.customization,
                "flash_sale_price": str(item.flash_sale_price) if item.flash_sale_price is not None else None,
                "flash_sale_ends_at": item.flash_sale_ends_at.isoformat() if item.flash_sale_ends_at else None,
            }
            for item, line in zip(items, lines)
        ]

    def _result(self, order: OrderModel, already_settled: bool) -> Dict[str, Any]:
        return {
            "order_id": order.id,
            "status": order.status,
            "payment_ref": order.payment_ref,
            "wallet_debited": to_money(order.wallet_amount) if order.wallet_used else ZERO,
            "item_count": self.orders.count_items(order.id),
            "already_settled": already_settled,
        }

    @staticmethod
    def _order_dict(order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "user_id": order.user_id,
            "status": order.status,
            "currency": order.currency,
            "subtotal": to_money(order.subtotal),
            "discount_amount": to_money(order.discount_amount),
            "tax_amount": to_money(order.tax_amount),
            "delivery_fee": to_money(order.delivery_fee),
            "total_amount": to_money(order.total_amount),
            "wallet_used": order.wallet_used,
            "wallet_amount": to_money(order.wallet_amount),
            "payable_amount": to_money(order.payable_amount),
            "coupon_code": order.coupon_code,
            "shipping_address": order.shipping_address,
            "customization_metadata": order.customization_metadata or [],
            "intent_id": order.intent_id,
            "payment_ref": order.payment_ref,
            "items": [
                {
                    "product_id": i.product_id,
                    "quantity": i.quantity,
                    "unit_price": to_money(i.unit_price),
                    "line_total": to_money(i.line_total),
                    "customization": i.customization,
                }
                for i in order.items
            ],
            "created_at": order.created_at,
            "paid_at": order.paid_at,
        }

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from giftcart.data.models.cart import CartModel
from giftcart.data.models.cart_item import CartItemModel
from giftcart.data.models.coupon import CouponModel
from giftcart.domain.customization import TemplateCustomization
from giftcart.domain.errors import ConflictError, NotFoundError, ValidationError
from giftcart.repos.cart_repo import CartRepo
from giftcart.repos.coupon_repo import CouponRepo
from giftcart.services.coupon_service import CouponEvaluator, Eligibility
from giftcart.services.pricing import (
    CartSummary,
    PricedLine,
    PricingPolicy,
    calculate_summary,
    resolve_unit_price,
)
from giftcart.services.product_client import ProductClient
from giftcart.utils.money import ZERO, to_money, utcnow
from giftcart.utils.logging import get_logger

logger = get_logger(__name__)


def parse_datetime(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def load_products(product_client: ProductClient, product_ids) -> Dict[int, dict]:
    products: Dict[int, dict] = {}
    for product_id in product_ids:
        if product_id not in products:
            products[product_id] = product_client.get_product(product_id)
    return products


def price_line(item: CartItemModel, product: dict, now: datetime) -> PricedLine:
    return PricedLine(
        product_id=item.product_id,
        quantity=item.quantity,
        unit_price=resolve_unit_price(product, item.flash_sale_price, item.flash_sale_ends_at, now),
        delivery_fee=to_money(product.get("delivery_fee") or 0),
        categories=tuple(product.get("categories") or ()),
    )


def coupon_dict(coupon: CouponModel) -> Dict[str, Any]:
    return {
        "id": coupon.id,
        "code": coupon.code,
        "description": coupon.description,
        "discount_type": coupon.discount_type,
        "discount_value": to_money(coupon.discount_value),
        "min_purchase_amount": to_money(coupon.min_purchase_amount) if coupon.min_purchase_amount is not None else None,
        "max_discount_amount": to_money(coupon.max_discount_amount) if coupon.max_discount_amount is not None else None,
    }


@dataclass
class PricedCart:
    cart: CartModel | None
    items: List[CartItemModel] = field(default_factory=list)
    lines: List[PricedLine] = field(default_factory=list)
    products: Dict[int, dict] = field(default_factory=dict)
    coupon: CouponModel | None = None
    eligibility: Eligibility | None = None
    summary: CartSummary = field(default_factory=CartSummary)


class CartService:
    """
    Use case'y koszyka (jeden koszyk na uzytkownika).
    commands (add, update, remove, clear, coupon) modyfikuja stan z optimistic lockingiem na version,
    query (get) zawsze przelicza ceny i rabat od nowa - nie ufamy zapisanemu discount_amount.
    """

    def __init__(self, db: Session, product_client: ProductClient, policy: PricingPolicy | None = None):
        self.repo = CartRepo(db)
        self.coupons = CouponRepo(db)
        self.evaluator = CouponEvaluator(db)
        self.product_client = product_client
        self.policy = policy

    #query
    def price_cart(self, user_id: int, now: datetime | None = None) -> PricedCart:
        now = now or utcnow()
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            return PricedCart(cart=None)

        items = self.repo.get_cart_items(cart.id)
        products = load_products(self.product_client, [i.product_id for i in items])
        lines = [price_line(i, products[i.product_id], now) for i in items]

        coupon, eligibility = None, None
        if cart.coupon_id is not None and items:
            coupon = self.coupons.get_coupon(cart.coupon_id)
            if coupon:
                eligibility = self.evaluator.evaluate(coupon, lines, user_id, now)

        applied = coupon if eligibility and eligibility.eligible else None
        summary = calculate_summary(lines, applied, self.policy)

        return PricedCart(
            cart=cart,
            items=items,
            lines=lines,
            products=products,
            coupon=coupon,
            eligibility=eligibility,
            summary=summary,
        )

    def get_cart(self, user_id: int) -> Dict[str, Any]:
        priced = self.price_cart(user_id)
        return self._to_dict(user_id, priced)

    def get_applied_coupon(self, user_id: int) -> Dict[str, Any]:
        priced = self.price_cart(user_id)
        if not priced.cart or priced.coupon is None:
            raise NotFoundError("No coupon applied to cart", code="coupon_not_applied")

        eligibility = priced.eligibility
        return {
            "coupon": coupon_dict(priced.coupon),
            "coupon_status": eligibility.reason if eligibility else None,
            "summary": priced.summary.as_dict(),
        }

    #commands
    def add_item(self, user_id: int, product_id: int, quantity: int = 1,
                 custom_template_id: int | None = None) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationError("Quantity must be at least 1", code="invalid_quantity")

        product = self.product_client.get_product(product_id)
        cart = self.repo.get_or_create_cart(user_id)

        try:
            line = self.repo.find_line(cart.id, product_id, custom_template_id)
            if line:
                new_quantity = self.repo.increment_quantity(line.id, quantity)
                logger.info(f"Produkt {product_id} juz jest w koszyku {cart.id}, ilosc -> {new_quantity}")
            else:
                new_quantity = quantity
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=product_id,
                        quantity=quantity,
                        custom_template_id=custom_template_id,
                        customization=TemplateCustomization(template_id=custom_template_id).model_dump()
                        if custom_template_id else None,
                        flash_sale_price=product.get("flash_sale_price"),
                        flash_sale_ends_at=parse_datetime(product.get("flash_sale_ends_at")),
                    )
                )
                logger.info(f"Dodaje nowy produkt {product_id} do koszyka {cart.id}")

            self._check_stock(product, product_id, new_quantity)
            self._bump_version(cart)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        return self.get_cart(user_id)

    def update_quantity(self, user_id: int, item_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", code="invalid_quantity")

        cart, item = self._owned_item(user_id, item_id)
        product = self.product_client.get_product(item.product_id)
        self._check_stock(product, item.product_id, quantity)

        try:
            item.quantity = quantity
            self.repo.db.flush()
            self._bump_version(cart)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Pozycja {item_id} w koszyku {cart.id} ma teraz ilosc {quantity}")
        return self.get_cart(user_id)

    def remove_item(self, user_id: int, item_id: int) -> Dict[str, Any]:
        cart = self._require_cart(user_id)

        try:
            if self.repo.delete_cart_item(cart.id, item_id) == 0:
                raise NotFoundError("Item not found in cart", code="cart_item_not_found")
            self._bump_version(cart)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Pozycja {item_id} usunieta z koszyka {cart.id}")
        return self.get_cart(user_id)

    def clear_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)
        if cart:
            try:
                self.repo.clear_items(cart.id)
                self._bump_version(cart)
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise
            logger.info(f"Koszyk {cart.id} wyczyszczony")
        return self.get_cart(user_id)

    def link_customization(self, user_id: int, item_id: int,
                           customization: TemplateCustomization) -> Dict[str, Any]:
        cart, item = self._owned_item(user_id, item_id)

        payload = customization.model_dump()
        if payload.get("template_id") is None:
            payload["template_id"] = item.custom_template_id
        # adresy obrazow z obszarow tez trafiaja do listy, bez duplikatow
        urls = list(dict.fromkeys(
            list(payload["image_urls"]) + [a["image_url"] for a in payload["areas"] if a.get("image_url")]
        ))
        payload["image_urls"] = urls

        try:
            item.customization = payload
            self.repo.db.flush()
            self._bump_version(cart)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Personalizacja ({len(payload['areas'])} obszarow) podpieta do pozycji {item_id}")
        return self.get_cart(user_id)

    def apply_coupon(self, user_id: int, code: str) -> Dict[str, Any]:
        coupon = self.coupons.get_by_code(code)
        if not coupon:
            raise NotFoundError("Coupon not found", code="coupon_not_found")

        priced = self.price_cart(user_id)
        if not priced.cart or not priced.items:
            raise ValidationError("Your cart is empty", code="cart_empty")

        # ponowne zastosowanie tego samego kodu przelicza, nie kumuluje
        eligibility = self.evaluator.evaluate(coupon, priced.lines, user_id, utcnow())
        eligibility.raise_if_ineligible()

        try:
            self._bump_version(priced.cart, {"coupon_id": coupon.id, "discount_amount": eligibility.discount})
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Kupon {coupon.code} zastosowany do koszyka {priced.cart.id}, rabat {eligibility.discount}")
        return self.get_cart(user_id)

    def remove_coupon(self, user_id: int) -> Dict[str, Any]:
        cart = self._require_cart(user_id)
        if cart.coupon_id is None:
            raise ValidationError("No coupon applied to remove", code="coupon_not_applied")

        try:
            self._bump_version(cart, {"coupon_id": None, "discount_amount": ZERO})
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Kupon usuniety z koszyka {cart.id}")
        return self.get_cart(user_id)

    #helpers
    def _require_cart(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            raise NotFoundError("Cart not found", code="cart_not_found")
        return cart

    def _owned_item(self, user_id: int, item_id: int):
        cart = self._require_cart(user_id)
        item = self.repo.get_cart_item(cart.id, item_id)
        if not item:
            raise NotFoundError("Item not found in cart", code="cart_item_not_found")
        return cart, item

    @staticmethod
    def _check_stock(product: dict, product_id: int, quantity: int):
        stock = product.get("stock")
        if stock is not None and quantity > stock:
            raise ValidationError(f"Only {stock} items of product {product_id} available in stock",
                                  code="insufficient_stock")

    def _bump_version(self, cart: CartModel, extra: dict | None = None):
        old_version = cart.version
        new_data = {"version": old_version + 1, "updated_at": utcnow()}
        new_data.update(extra or {})

        # update carts set version = v+1 where id = :id and version = v
        rowcount = self.repo.update_cart_version(cart.id, old_version, new_data)
        if rowcount == 0:
            raise ConflictError(
                "Cart was modified by another request, please retry",
                code="concurrent_modification",
            )

    def _to_dict(self, user_id: int, priced: PricedCart) -> Dict[str, Any]:
        coupon_status = None
        if priced.eligibility is not None and not priced.eligibility.eligible:
            coupon_status = priced.eligibility.reason

        return {
            "cart_id": priced.cart.id if priced.cart else None,
            "user_id": user_id,
            "items": [
                {
                    "id": item.id,
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "unit_price": line.unit_price,
                    "line_total": line.line_total,
                    "custom_template_id": item.custom_template_id,
                    "customization": item.customization,
                }
                for item, line in zip(priced.items, priced.lines)
            ],
            "coupon": coupon_dict(priced.coupon) if priced.coupon else None,
            "coupon_status": coupon_status,
            "summary": priced.summary.as_dict(),
        }

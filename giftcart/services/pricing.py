# giftcart/services/pricing.py
"""
Kalkulator cen koszyka - czyste funkcje, bez I/O.

subtotal -> rabat z kuponu -> podatek od (subtotal - rabat) -> dostawa -> total
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Sequence

from giftcart.utils.money import ZERO, to_money, as_utc
from giftcart.utils import settings

PERCENTAGE = "PERCENTAGE"
FIXED = "FIXED"


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    quantity: int
    unit_price: Decimal
    delivery_fee: Decimal = ZERO
    categories: tuple = ()

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class CartSummary:
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    delivery_fee: Decimal = ZERO
    tax: Decimal = ZERO
    total: Decimal = ZERO

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "delivery_fee": self.delivery_fee,
            "tax": self.tax,
            "total": self.total,
        }


def per_product_delivery(lines: Sequence[PricedLine]) -> Decimal:
    return to_money(sum((line.delivery_fee * line.quantity for line in lines), ZERO))


def flat_delivery(fee: Decimal) -> Callable[[Sequence[PricedLine]], Decimal]:
    def _fee(lines: Sequence[PricedLine]) -> Decimal:
        return to_money(fee) if lines else ZERO

    return _fee


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: Decimal = ZERO
    delivery: Callable[[Sequence[PricedLine]], Decimal] = field(default=per_product_delivery)


def default_policy() -> PricingPolicy:
    if settings.DELIVERY_FEE_POLICY == "flat":
        delivery = flat_delivery(settings.FLAT_DELIVERY_FEE)
    elif settings.DELIVERY_FEE_POLICY == "per_product":
        delivery = per_product_delivery
    else:
        raise ValueError(f"Unknown DELIVERY_FEE_POLICY: {settings.DELIVERY_FEE_POLICY}")
    return PricingPolicy(tax_rate=settings.TAX_RATE, delivery=delivery)


def resolve_unit_price(product: dict, flash_sale_price=None, flash_sale_ends_at: datetime | None = None,
                       now: datetime | None = None) -> Decimal:
    """flash sale (jesli aktywny) > discounted_price > price"""
    if flash_sale_price is not None:
        ends_at = as_utc(flash_sale_ends_at)
        if ends_at is None or now is None or as_utc(now) <= ends_at:
            return to_money(flash_sale_price)

    discounted = product.get("discounted_price")
    if discounted is not None:
        return to_money(discounted)
    return to_money(product["price"])


def subtotal_of(lines: Sequence[PricedLine]) -> Decimal:
    return to_money(sum((line.line_total for line in lines), ZERO))


def calculate_discount(coupon, subtotal: Decimal) -> Decimal:
    if coupon is None or subtotal <= ZERO:
        return ZERO

    value = to_money(coupon.discount_value)
    if coupon.discount_type == PERCENTAGE:
        discount = to_money(subtotal * value / Decimal(100))
        if coupon.max_discount_amount is not None:
            discount = min(discount, to_money(coupon.max_discount_amount))
    elif coupon.discount_type == FIXED:
        discount = value
    else:
        return ZERO

    # rabat nigdy nie przekracza subtotal i nie jest ujemny
    return max(min(discount, subtotal), ZERO)


def calculate_summary(lines: Sequence[PricedLine], coupon=None,
                      policy: PricingPolicy | None = None) -> CartSummary:
    if not lines:
        return CartSummary()

    policy = policy or default_policy()

    subtotal = subtotal_of(lines)
    discount = calculate_discount(coupon, subtotal)
    taxable = subtotal - discount
    tax = to_money(taxable * policy.tax_rate)
    delivery_fee = to_money(policy.delivery(lines))
    total = max(taxable + tax + delivery_fee, ZERO)

    return CartSummary(
        subtotal=subtotal,
        discount=discount,
        delivery_fee=delivery_fee,
        tax=tax,
        total=to_money(total),
    )

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from giftcart.services.pricing import (
    FIXED,
    PERCENTAGE,
    PricedLine,
    PricingPolicy,
    calculate_discount,
    calculate_summary,
    flat_delivery,
    resolve_unit_price,
)

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def coupon(discount_type, value, max_discount=None):
    return SimpleNamespace(
        discount_type=discount_type,
        discount_value=Decimal(value),
        max_discount_amount=Decimal(max_discount) if max_discount is not None else None,
    )


def line(price, quantity=1, delivery="0"):
    return PricedLine(product_id=1, quantity=quantity, unit_price=Decimal(price), delivery_fee=Decimal(delivery))


def test_empty_cart_is_all_zeros():
    summary = calculate_summary([], coupon(FIXED, "100"), PricingPolicy())

    assert summary.subtotal == summary.discount == summary.total == Decimal("0.00")


def test_percentage_discount_is_capped():
    summary = calculate_summary([line("1000", 2)], coupon(PERCENTAGE, "20", max_discount="150"), PricingPolicy())

    assert summary.subtotal == Decimal("2000.00")
    assert summary.discount == Decimal("150.00")
    assert summary.total == Decimal("1850.00")


def test_fixed_discount_never_exceeds_subtotal():
    summary = calculate_summary([line("80")], coupon(FIXED, "100"), PricingPolicy())

    assert summary.discount == Decimal("80.00")
    assert summary.total == Decimal("0.00")


def test_tax_applies_to_discounted_subtotal():
    policy = PricingPolicy(tax_rate=Decimal("0.18"))
    summary = calculate_summary([line("1000")], coupon(FIXED, "100"), policy)

    assert summary.tax == Decimal("162.00")
    assert summary.total == Decimal("1062.00")


def test_delivery_fee_per_product_and_flat():
    lines = [line("100", 2, delivery="40"), line("50", 1, delivery="10")]

    per_product = calculate_summary(lines, None, PricingPolicy())
    flat = calculate_summary(lines, None, PricingPolicy(delivery=flat_delivery(Decimal("99"))))

    assert per_product.delivery_fee == Decimal("90.00")
    assert flat.delivery_fee == Decimal("99.00")
    assert flat.total == Decimal("349.00")


def test_money_is_rounded_half_up_to_cents():
    summary = calculate_summary([line("0.25")], coupon(PERCENTAGE, "10"), PricingPolicy())

    # 10% z 0.25 = 0.025 -> 0.03
    assert summary.discount == Decimal("0.03")
    assert summary.total == Decimal("0.22")


def test_unknown_discount_type_gives_no_discount():
    assert calculate_discount(coupon("BOGO", "50"), Decimal("100")) == Decimal("0")


@pytest.mark.parametrize(
    "product, flash_price, ends_at, expected",
    [
        ({"price": 500, "discounted_price": None}, None, None, "500.00"),
        ({"price": 500, "discounted_price": 450}, None, None, "450.00"),
        ({"price": 500, "discounted_price": 450}, "399", NOW + timedelta(hours=1), "399.00"),
        ({"price": 500, "discounted_price": 450}, "399", NOW - timedelta(hours=1), "450.00"),
    ],
)
def test_unit_price_precedence(product, flash_price, ends_at, expected):
    assert resolve_unit_price(product, flash_price, ends_at, NOW) == Decimal(expected)


def test_naive_flash_sale_end_is_treated_as_utc():
    ends_at = datetime(2026, 5, 1, 13, 0)

    assert resolve_unit_price({"price": 10}, "5", ends_at, NOW) == Decimal("5.00")

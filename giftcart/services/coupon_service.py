# giftcart/services/coupon_service.py
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy.orm import Session

from giftcart.data.models.coupon import CouponModel
from giftcart.domain.errors import IneligibleError
from giftcart.repos.coupon_repo import CouponRepo
from giftcart.services.pricing import PricedLine, calculate_discount, subtotal_of
from giftcart.utils.money import ZERO, as_utc, to_money
from giftcart.utils.logging import get_logger

logger = get_logger(__name__)

EXPIRED_OR_INACTIVE = "expired_or_inactive"
USAGE_LIMIT_REACHED = "usage_limit_reached"
NOT_APPLICABLE_TO_ACCOUNT = "not_applicable_to_account"
PER_USER_LIMIT_REACHED = "per_user_limit_reached"
BELOW_MINIMUM_PURCHASE = "below_minimum_purchase"
NOT_APPLICABLE_TO_CART_CONTENTS = "not_applicable_to_cart_contents"

MESSAGES = {
    EXPIRED_OR_INACTIVE: "This coupon is not valid at this time",
    USAGE_LIMIT_REACHED: "This coupon has reached its usage limit",
    NOT_APPLICABLE_TO_ACCOUNT: "This coupon is not applicable for your account",
    PER_USER_LIMIT_REACHED: "You have already used this coupon the maximum number of times",
    BELOW_MINIMUM_PURCHASE: "Minimum purchase amount not reached for this coupon",
    NOT_APPLICABLE_TO_CART_CONTENTS: "This coupon is not applicable for the items in your cart",
}


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    discount: Decimal = ZERO
    reason: str | None = None

    def raise_if_ineligible(self):
        if not self.eligible:
            raise IneligibleError(self.reason, MESSAGES.get(self.reason))


class CouponEvaluator:
    """
    Sprawdza kupon wzgledem koszyka i historii uzyc.
    Kolejnosc regul ma znaczenie - pierwsza niespelniona wygrywa.
    Nigdy nie zapisuje CouponUsage.
    """

    def __init__(self, db: Session):
        self.repo = CouponRepo(db)

    def evaluate(self, coupon: CouponModel, lines: Sequence[PricedLine], user_id: int,
                 now: datetime) -> Eligibility:
        now = as_utc(now)

        #1 aktywny i w oknie waznosci
        start, end = as_utc(coupon.start_date), as_utc(coupon.end_date)
        if not coupon.is_active or (start and now < start) or (end and now > end):
            return Eligibility(False, reason=EXPIRED_OR_INACTIVE)

        #2 limit globalny liczony z tabeli uzyc, nie z cache
        if coupon.usage_limit is not None:
            if self.repo.count_usages(coupon.id) >= coupon.usage_limit:
                return Eligibility(False, reason=USAGE_LIMIT_REACHED)

        #3 ograniczenie do konkretnych uzytkownikow
        allowed_users = coupon.applicable_user_ids or []
        if allowed_users and user_id not in allowed_users:
            return Eligibility(False, reason=NOT_APPLICABLE_TO_ACCOUNT)

        #4 limit na uzytkownika
        if coupon.per_user_limit is not None:
            if self.repo.count_usages(coupon.id, user_id=user_id) >= coupon.per_user_limit:
                return Eligibility(False, reason=PER_USER_LIMIT_REACHED)

        #5 minimalna wartosc koszyka
        subtotal = subtotal_of(lines)
        if coupon.min_purchase_amount is not None and subtotal < to_money(coupon.min_purchase_amount):
            return Eligibility(False, reason=BELOW_MINIMUM_PURCHASE)

        #6 produkty / kategorie
        if not self._matches_cart(coupon, lines):
            return Eligibility(False, reason=NOT_APPLICABLE_TO_CART_CONTENTS)

        return Eligibility(True, discount=calculate_discount(coupon, subtotal))

    @staticmethod
    def _matches_cart(coupon: CouponModel, lines: Sequence[PricedLine]) -> bool:
        product_ids = set(coupon.applicable_product_ids or [])
        categories = set(coupon.applicable_categories or [])
        if not product_ids and not categories:
            return True

        for line in lines:
            if line.product_id in product_ids:
                return True
            if categories.intersection(line.categories):
                return True
        return False

    def check_limits(self, coupon: CouponModel, user_id: int):
        """
        Ponowna kontrola limitow w momencie rozliczenia,
        w tej samej transakcji co insert CouponUsage.
        """
        if coupon.usage_limit is not None and self.repo.count_usages(coupon.id) >= coupon.usage_limit:
            raise IneligibleError(USAGE_LIMIT_REACHED, MESSAGES[USAGE_LIMIT_REACHED])
        if coupon.per_user_limit is not None and \
                self.repo.count_usages(coupon.id, user_id=user_id) >= coupon.per_user_limit:
            raise IneligibleError(PER_USER_LIMIT_REACHED, MESSAGES[PER_USER_LIMIT_REACHED])

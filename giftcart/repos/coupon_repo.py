# giftcart/repos/coupon_repo.py
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from giftcart.data.models.coupon import CouponModel
from giftcart.data.models.coupon_usage import CouponUsageModel


class CouponRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_coupon(self, coupon_id: int) -> CouponModel | None:
        return self.db.get(CouponModel, coupon_id)

    def get_by_code(self, code: str) -> CouponModel | None:
        return self.db.execute(
            select(CouponModel).where(CouponModel.code == code)
        ).scalar_one_or_none()

    def lock_coupon(self, coupon_id: int) -> CouponModel | None:
        # serializuje rozliczenia walczace o ostatnie uzycie kuponu
        return self.db.execute(
            select(CouponModel)
            .where(CouponModel.id == coupon_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def count_usages(self, coupon_id: int, user_id: int | None = None) -> int:
        stmt = select(func.count(CouponUsageModel.id)).where(CouponUsageModel.coupon_id == coupon_id)
        if user_id is not None:
            stmt = stmt.where(CouponUsageModel.user_id == user_id)
        return self.db.execute(stmt).scalar_one()

    def add_usage(self, coupon_id: int, user_id: int, order_id: int) -> CouponUsageModel:
        usage = CouponUsageModel(coupon_id=coupon_id, user_id=user_id, order_id=order_id)
        self.db.add(usage)
        self.db.flush()
        return usage

# giftcart/data/seed.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select

from giftcart.data.database import Base, SessionLocal, engine
from giftcart.data.models.coupon import CouponModel
from giftcart.utils.logging import get_logger

logger = get_logger(__name__)


def demo_coupons(now: datetime) -> list[CouponModel]:
    return [
        CouponModel(
            code="WELCOME10",
            description="10% off your first order, up to 200",
            discount_type="PERCENTAGE",
            discount_value=Decimal("10"),
            max_discount_amount=Decimal("200"),
            per_user_limit=1,
            start_date=now,
            end_date=now + timedelta(days=365),
        ),
        CouponModel(
            code="FLAT100",
            description="100 off orders above 999",
            discount_type="FIXED",
            discount_value=Decimal("100"),
            min_purchase_amount=Decimal("999"),
            usage_limit=1000,
            start_date=now,
            end_date=now + timedelta(days=90),
        ),
        CouponModel(
            code="MUGS15",
            description="15% off mugs",
            discount_type="PERCENTAGE",
            discount_value=Decimal("15"),
            applicable_categories=["mugs"],
            start_date=now,
            end_date=now + timedelta(days=30),
        ),
    ]


def seed():
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.execute(select(CouponModel.id).limit(1)).first():
            logger.info("Coupons already present, skipping seed")
            return
        coupons = demo_coupons(datetime.now(timezone.utc))
        db.add_all(coupons)
        db.commit()
        logger.info(f"Seeded {len(coupons)} demo coupons")
    finally:
        db.close()


if __name__ == "__main__":
    import giftcart.data.models  # noqa: F401

    seed()

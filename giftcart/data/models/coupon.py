from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, JSON

from giftcart.data.database import Base


class CouponModel(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    description = Column(String(255), nullable=True)

    discount_type = Column(String(16), nullable=False)  # PERCENTAGE, FIXED
    discount_value = Column(Numeric(12, 2), nullable=False)
    min_purchase_amount = Column(Numeric(12, 2), nullable=True)
    max_discount_amount = Column(Numeric(12, 2), nullable=True)

    usage_limit = Column(Integer, nullable=True)
    per_user_limit = Column(Integer, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    # puste listy = brak ograniczen
    applicable_user_ids = Column(JSON, nullable=False, default=list)
    applicable_product_ids = Column(JSON, nullable=False, default=list)
    applicable_categories = Column(JSON, nullable=False, default=list)

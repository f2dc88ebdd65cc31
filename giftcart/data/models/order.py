from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Boolean, JSON, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from giftcart.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)

    status = Column(String(16), nullable=False, default="INITIATED")  # INITIATED, PAID, ABANDONED
    currency = Column(String(3), nullable=False)

    # snapshot kwot z momentu inicjacji
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    delivery_fee = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    wallet_used = Column(Boolean, nullable=False, default=False)
    wallet_amount = Column(Numeric(12, 2), nullable=False, default=0)
    payable_amount = Column(Numeric(12, 2), nullable=False)

    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=True)
    coupon_code = Column(String(64), nullable=True)

    shipping_address = Column(JSON, nullable=False)
    customization_metadata = Column(JSON, nullable=False, default=list)
    line_snapshot = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)

    intent_id = Column(String(64), ForeignKey("payment_intents.intent_id"), nullable=False, unique=True)
    payment_ref = Column(String(64), nullable=True)
    payment_signature = Column(String(128), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    paid_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship("OrderItemModel", back_populates="order", order_by="OrderItemModel.id")
    intent = relationship("PaymentIntentModel")

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, Numeric, String, DateTime

from giftcart.data.database import Base


class PaymentIntentModel(Base):
    __tablename__ = "payment_intents"

    id = Column(Integer, primary_key=True)
    intent_id = Column(String(64), nullable=False, unique=True, index=True)
    purpose = Column(String(16), nullable=False, default="ORDER")  # ORDER, WALLET_TOPUP
    user_id = Column(Integer, nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    receipt = Column(String(64), nullable=False)

    status = Column(String(16), nullable=False, default="CREATED")  # CREATED, CONFIRMED, FAILED
    external_ref = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, ForeignKey, Numeric, String, DateTime
from sqlalchemy.orm import relationship

from giftcart.data.database import Base


class WalletTransactionModel(Base):
    """Append-only: wiersze nigdy nie sa aktualizowane ani usuwane."""

    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)  # ze znakiem, debit < 0
    type = Column(String(16), nullable=False)  # credit, debit
    description = Column(String(255), nullable=False)
    reference = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    wallet = relationship("WalletModel", back_populates="transactions")

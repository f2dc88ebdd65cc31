from datetime import datetime, timezone
from sqlalchemy import Column, Integer, ForeignKey, Numeric, DateTime, JSON
from sqlalchemy.orm import relationship

from giftcart.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)

    quantity = Column(Integer, nullable=False)
    custom_template_id = Column(Integer, nullable=True)
    customization = Column(JSON, nullable=True)

    # cena z flash sale, kopiowana z katalogu w momencie dodania
    flash_sale_price = Column(Numeric(12, 2), nullable=True)
    flash_sale_ends_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    cart = relationship("CartModel", back_populates="items")

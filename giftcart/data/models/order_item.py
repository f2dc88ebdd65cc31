from sqlalchemy import Column, Integer, ForeignKey, Numeric, JSON
from sqlalchemy.orm import relationship

from giftcart.data.database import Base


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)
    customization = Column(JSON, nullable=True)

    order = relationship("OrderModel", back_populates="items")

from sqlalchemy import Column, Integer, String

from giftcart.data.database import Base


class AddressModel(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)

    full_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False)
    line1 = Column(String(255), nullable=False)
    line2 = Column(String(255), nullable=True)
    city = Column(String(85), nullable=False)
    state = Column(String(85), nullable=True)
    country = Column(String(85), nullable=False)
    pin_code = Column(String(12), nullable=False)

# giftcart/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import List, Optional
from decimal import Decimal
from datetime import datetime


class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0)
    quantity: int = Field(1, gt=0)
    custom_template_id: Optional[int] = Field(None, gt=0)


class QuantityIn(BaseModel):
    quantity: int = Field(..., ge=1)


class CouponIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class CartItemOut(BaseModel):
    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    custom_template_id: Optional[int] = None
    customization: Optional[dict] = None


class CouponOut(BaseModel):
    id: int
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: Decimal
    min_purchase_amount: Optional[Decimal] = None
    max_discount_amount: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class SummaryOut(BaseModel):
    subtotal: Decimal
    discount: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    cart_id: Optional[int] = None
    user_id: int
    items: List[CartItemOut]
    coupon: Optional[CouponOut] = None
    coupon_status: Optional[str] = None
    summary: SummaryOut


class ShippingAddressIn(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=10, max_length=14, pattern=r"^\d+$")
    line1: str = Field(..., min_length=1, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=85)
    state: Optional[str] = Field(None, max_length=85)
    country: str = Field(..., min_length=1, max_length=85)
    pin_code: str = Field(..., min_length=3, max_length=12)


class OrderCreate(BaseModel):
    """Schema dla inicjacji zamowienia."""

    address_id: Optional[int] = Field(None, gt=0)
    address: Optional[ShippingAddressIn] = None
    use_wallet: bool = False
    wallet_amount: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _one_address(self):
        if (self.address_id is None) == (self.address is None):
            raise ValueError("Provide exactly one of address_id or address")
        return self


class OrderInitiatedOut(BaseModel):
    order_id: int
    intent_id: str
    amount: Decimal
    currency: str
    total: Decimal
    wallet_amount: Decimal
    key_id: Optional[str] = None


class SettleIn(BaseModel):
    intent_id: str = Field(..., min_length=1, max_length=64)
    external_ref: str = Field(..., min_length=1, max_length=64)
    signature: str = Field(..., min_length=1, max_length=128)
    # opcjonalne: jesli podane, musza zgadzac sie ze snapshotem zamowienia
    use_wallet: Optional[bool] = None
    wallet_amount: Optional[Decimal] = Field(None, ge=0)


class WebhookIn(BaseModel):
    intent_id: str = Field(..., min_length=1, max_length=64)
    external_ref: str = Field(..., min_length=1, max_length=64)
    signature: str = Field(..., min_length=1, max_length=128)


class SettlementOut(BaseModel):
    order_id: int
    status: str
    payment_ref: str
    wallet_debited: Decimal
    item_count: int
    already_settled: bool = False


class OrderItemOut(BaseModel):
    product_id: int
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    customization: Optional[dict] = None


class OrderOut(BaseModel):
    """Schema dla zamowienia (response)."""

    id: int
    user_id: int
    status: str
    currency: str
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    wallet_used: bool
    wallet_amount: Decimal
    payable_amount: Decimal
    coupon_code: Optional[str] = None
    shipping_address: dict
    customization_metadata: list
    intent_id: str
    payment_ref: Optional[str] = None
    items: List[OrderItemOut]
    created_at: datetime
    paid_at: Optional[datetime] = None


class TopupIn(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class TopupOut(BaseModel):
    intent_id: str
    amount: Decimal
    currency: str
    key_id: Optional[str] = None


class TopupVerifyIn(BaseModel):
    intent_id: str = Field(..., min_length=1, max_length=64)
    external_ref: str = Field(..., min_length=1, max_length=64)
    signature: str = Field(..., min_length=1, max_length=128)


class WalletTransactionOut(BaseModel):
    id: int
    amount: Decimal
    type: str
    description: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WalletOut(BaseModel):
    balance: Decimal
    transactions: List[WalletTransactionOut]


class TopupVerifiedOut(BaseModel):
    intent_id: str
    balance: Decimal
    already_processed: bool = False


class TransactionPageOut(BaseModel):
    transactions: List[WalletTransactionOut]
    current_page: int
    total_pages: int
    total_transactions: int


class AppliedCouponOut(BaseModel):
    coupon: CouponOut
    coupon_status: Optional[str] = None
    summary: SummaryOut

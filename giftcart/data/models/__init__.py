#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from giftcart.data.models.address import AddressModel
from giftcart.data.models.coupon import CouponModel
from giftcart.data.models.coupon_usage import CouponUsageModel
from giftcart.data.models.cart import CartModel
from giftcart.data.models.cart_item import CartItemModel
from giftcart.data.models.wallet import WalletModel
from giftcart.data.models.wallet_transaction import WalletTransactionModel
from giftcart.data.models.payment_intent import PaymentIntentModel
from giftcart.data.models.order import OrderModel
from giftcart.data.models.order_item import OrderItemModel

__all__ = [
    "AddressModel",
    "CouponModel",
    "CouponUsageModel",
    "CartModel",
    "CartItemModel",
    "WalletModel",
    "WalletTransactionModel",
    "PaymentIntentModel",
    "OrderModel",
    "OrderItemModel",
]

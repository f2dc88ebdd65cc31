# giftcart/repos/cart_repo.py
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from giftcart.data.models.cart import CartModel
from giftcart.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.user_id == user_id)
        ).scalar_one_or_none()

    def get_or_create_cart(self, user_id: int) -> CartModel:
        cart = self.get_cart_by_user(user_id)
        if cart:
            return cart

        cart = CartModel(user_id=user_id, version=1, discount_amount=0)
        self.db.add(cart)
        try:
            self.db.commit()
        except IntegrityError:
            # rownolegle zapytanie utworzylo juz koszyk (unique user_id)
            self.db.rollback()
            return self.get_cart_by_user(user_id)
        self.db.refresh(cart)
        return cart

    def get_cart_items(self, cart_id: int) -> list[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.id)
            ).scalars()
        )

    def get_cart_item(self, cart_id: int, item_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.id == item_id,
            )
        ).scalar_one_or_none()

    def find_line(self, cart_id: int, product_id: int, custom_template_id: int | None) -> CartItemModel | None:
        template_clause = (
            CartItemModel.custom_template_id.is_(None)
            if custom_template_id is None
            else CartItemModel.custom_template_id == custom_template_id
        )
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
                template_clause,
            )
        ).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def increment_quantity(self, item_id: int, by: int) -> int:
        # atomowo w bazie, zamiast read-modify-write
        self.db.execute(
            update(CartItemModel)
            .where(CartItemModel.id == item_id)
            .values(quantity=CartItemModel.quantity + by)
        )
        return self.db.execute(
            select(CartItemModel.quantity).where(CartItemModel.id == item_id)
        ).scalar_one()

    def delete_cart_item(self, cart_id: int, item_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.id == item_id,
            )
        )
        return result.rowcount

    def clear_items(self, cart_id: int) -> int:
        result = self.db.execute(delete(CartItemModel).where(CartItemModel.cart_id == cart_id))
        return result.rowcount

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        # optimistic locking: update ... where id = :id and version = :old
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def reset_cart(self, cart_id: int) -> int:
        # po rozliczeniu: bez kuponu, bez rabatu, nowa wersja (bez CAS, rozliczenie wygrywa)
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id)
            .values(coupon_id=None, discount_amount=0, version=CartModel.version + 1)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

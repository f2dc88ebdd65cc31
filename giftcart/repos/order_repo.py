# giftcart/repos/order_repo.py
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from giftcart.data.models.order import OrderModel
from giftcart.data.models.order_item import OrderItemModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .options(selectinload(OrderModel.items))
        ).scalar_one_or_none()

    def get_order_by_intent(self, intent_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.intent_id == intent_id)
        ).scalar_one_or_none()

    def lock_order(self, order_id: int) -> OrderModel | None:
        # SELECT ... FOR UPDATE, zawsze swiezy stan z bazy
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_orders(self, user_id: int) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.user_id == user_id)
                .options(selectinload(OrderModel.items))
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars()
        )

    def find_stale_ids(self, created_before: datetime) -> list[int]:
        return list(
            self.db.execute(
                select(OrderModel.id).where(
                    OrderModel.status == "INITIATED",
                    OrderModel.created_at < created_before,
                )
            ).scalars()
        )

    def transition_status(self, order_id: int, from_status: str, new_data: dict) -> int:
        # compare-and-set na statusie
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == from_status)
            .values(**new_data)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def add_item(self, item: OrderItemModel) -> OrderItemModel:
        self.db.add(item)
        return item

    def count_items(self, order_id: int) -> int:
        return len(
            self.db.execute(select(OrderItemModel.id).where(OrderItemModel.order_id == order_id)).all()
        )

# giftcart/repos/payment_intent_repo.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from giftcart.data.models.payment_intent import PaymentIntentModel


class PaymentIntentRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_intent(self, intent: PaymentIntentModel) -> PaymentIntentModel:
        self.db.add(intent)
        self.db.flush()
        return intent

    def get_intent(self, intent_id: str, for_update: bool = False) -> PaymentIntentModel | None:
        stmt = select(PaymentIntentModel).where(PaymentIntentModel.intent_id == intent_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

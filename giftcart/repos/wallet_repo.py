# giftcart/repos/wallet_repo.py
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from giftcart.data.models.wallet import WalletModel
from giftcart.data.models.wallet_transaction import WalletTransactionModel


class WalletRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_wallet(self, user_id: int) -> WalletModel | None:
        return self.db.execute(
            select(WalletModel)
            .where(WalletModel.user_id == user_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def ensure_wallet(self, user_id: int) -> WalletModel:
        """Tworzy portfel z saldem 0 przy pierwszym dostepie (commituje)."""
        wallet = self.get_wallet(user_id)
        if wallet:
            return wallet

        self.db.add(WalletModel(user_id=user_id, balance=0))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
        return self.get_wallet(user_id)

    def apply_delta(self, wallet_id: int, delta: Decimal) -> int:
        stmt = update(WalletModel).where(WalletModel.id == wallet_id)
        if delta < 0:
            # warunek w tym samym UPDATE - saldo nie moze zejsc ponizej zera
            stmt = stmt.where(WalletModel.balance >= -delta)
        result = self.db.execute(
            stmt.values(balance=WalletModel.balance + delta)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def add_transaction(self, txn: WalletTransactionModel) -> WalletTransactionModel:
        self.db.add(txn)
        self.db.flush()
        return txn

    def get_transaction(self, transaction_id: int) -> WalletTransactionModel | None:
        return self.db.get(WalletTransactionModel, transaction_id)

    def list_transactions(self, wallet_id: int, offset: int = 0, limit: int = 10) -> list[WalletTransactionModel]:
        return list(
            self.db.execute(
                select(WalletTransactionModel)
                .where(WalletTransactionModel.wallet_id == wallet_id)
                .order_by(WalletTransactionModel.created_at.desc(), WalletTransactionModel.id.desc())
                .offset(offset)
                .limit(limit)
            ).scalars()
        )

    def count_transactions(self, wallet_id: int) -> int:
        return self.db.execute(
            select(func.count(WalletTransactionModel.id)).where(WalletTransactionModel.wallet_id == wallet_id)
        ).scalar_one()

    def sum_transactions(self, wallet_id: int) -> Decimal:
        total = self.db.execute(
            select(func.coalesce(func.sum(WalletTransactionModel.amount), 0))
            .where(WalletTransactionModel.wallet_id == wallet_id)
        ).scalar_one()
        return Decimal(str(total))

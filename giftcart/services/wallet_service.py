# giftcart/services/wallet_service.py
import math
from decimal import Decimal

from sqlalchemy.orm import Session

from giftcart.data.models.wallet_transaction import WalletTransactionModel
from giftcart.domain.errors import InsufficientBalanceError, NotFoundError, ValidationError
from giftcart.repos.wallet_repo import WalletRepo
from giftcart.utils.money import ZERO, to_money
from giftcart.utils.logging import get_logger

logger = get_logger(__name__)

CREDIT = "credit"
DEBIT = "debit"


class WalletLedger:
    """
    Portfel uzytkownika + append-only log transakcji.

    Kazda zmiana salda idzie w parze z dokladnie jednym wpisem w logu,
    w tej samej transakcji bazy. credit/debit nie commituja - robi to
    wywolujacy (pozwala wlaczyc debit w atomowe rozliczenie zamowienia).
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = WalletRepo(db)

    #query
    def balance(self, user_id: int) -> Decimal:
        wallet = self.repo.ensure_wallet(user_id)
        return to_money(wallet.balance)

    def summary(self, user_id: int, recent: int = 10) -> dict:
        wallet = self.repo.ensure_wallet(user_id)
        return {
            "balance": to_money(wallet.balance),
            "transactions": self.repo.list_transactions(wallet.id, limit=recent),
        }

    def transactions(self, user_id: int, page: int = 1, limit: int = 10) -> dict:
        if page < 1 or limit < 1:
            raise ValidationError("Page and limit must be positive", code="invalid_pagination")

        wallet = self.repo.get_wallet(user_id)
        if not wallet:
            raise NotFoundError("Wallet not found", code="wallet_not_found")

        total = self.repo.count_transactions(wallet.id)
        return {
            "transactions": self.repo.list_transactions(wallet.id, offset=(page - 1) * limit, limit=limit),
            "current_page": page,
            "total_pages": math.ceil(total / limit),
            "total_transactions": total,
        }

    def replay_balance(self, user_id: int) -> Decimal:
        """Saldo odtworzone z logu - musi byc rowne saldu z portfela."""
        wallet = self.repo.ensure_wallet(user_id)
        return to_money(self.repo.sum_transactions(wallet.id))

    #commands
    def credit(self, user_id: int, amount, description: str, reference: str | None = None) -> int:
        amount = self._positive(amount)
        wallet = self.repo.ensure_wallet(user_id)

        self.repo.apply_delta(wallet.id, amount)
        txn = self.repo.add_transaction(
            WalletTransactionModel(
                wallet_id=wallet.id,
                amount=amount,
                type=CREDIT,
                description=description,
                reference=reference,
            )
        )
        logger.info(f"Wallet {wallet.id} (user {user_id}) credited {amount}: {description}")
        return txn.id

    def debit(self, user_id: int, amount, description: str, reference: str | None = None) -> int:
        amount = self._positive(amount)
        wallet = self.repo.ensure_wallet(user_id)

        # warunkowy UPDATE: rowcount 0 => za malo srodkow, nic nie zmieniono
        if self.repo.apply_delta(wallet.id, -amount) == 0:
            logger.info(f"Wallet {wallet.id} (user {user_id}) debit of {amount} rejected, insufficient balance")
            raise InsufficientBalanceError()

        txn = self.repo.add_transaction(
            WalletTransactionModel(
                wallet_id=wallet.id,
                amount=-amount,
                type=DEBIT,
                description=description,
                reference=reference,
            )
        )
        logger.info(f"Wallet {wallet.id} (user {user_id}) debited {amount}: {description}")
        return txn.id

    def reverse(self, user_id: int, transaction_id: int, description: str) -> int:
        """Odwrocenie = nowa transakcja z przeciwnym znakiem, oryginal zostaje."""
        wallet = self.repo.ensure_wallet(user_id)
        original = self.repo.get_transaction(transaction_id)
        if not original or original.wallet_id != wallet.id:
            raise NotFoundError("Transaction not found", code="transaction_not_found")

        amount = to_money(original.amount)
        if amount < ZERO:
            return self.credit(user_id, -amount, description, reference=f"reversal:{transaction_id}")
        return self.debit(user_id, amount, description, reference=f"reversal:{transaction_id}")

    def ensure_wallet(self, user_id: int):
        return self.repo.ensure_wallet(user_id)

    @staticmethod
    def _positive(amount) -> Decimal:
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError("Amount must be greater than 0", code="invalid_amount")
        return amount

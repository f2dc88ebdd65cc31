from decimal import Decimal

import pytest

from giftcart.domain.errors import InsufficientBalanceError, NotFoundError, ValidationError

USER = 21


def test_new_wallet_starts_empty(ledger):
    assert ledger.balance(USER) == Decimal("0.00")


def test_credit_and_debit_keep_log_in_sync(db, ledger):
    ledger.credit(USER, "500", "Top-up")
    ledger.debit(USER, "120.50", "Order #1")
    db.commit()

    assert ledger.balance(USER) == Decimal("379.50")
    assert ledger.replay_balance(USER) == Decimal("379.50")


def test_debit_more_than_balance_changes_nothing(db, ledger):
    ledger.credit(USER, "100", "Top-up")
    db.commit()

    with pytest.raises(InsufficientBalanceError):
        ledger.debit(USER, "100.01", "Order #2")
    db.rollback()

    page = ledger.transactions(USER)
    assert ledger.balance(USER) == Decimal("100.00")
    assert page["total_transactions"] == 1


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_non_positive_amounts_rejected(ledger, amount):
    with pytest.raises(ValidationError):
        ledger.credit(USER, amount, "bad")


def test_reversal_appends_opposite_entry(db, ledger):
    ledger.credit(USER, "300", "Top-up")
    db.commit()
    txn_id = ledger.debit(USER, "200", "Order #3")
    db.commit()

    ledger.reverse(USER, txn_id, "Refund order #3")
    db.commit()

    page = ledger.transactions(USER)
    assert ledger.balance(USER) == Decimal("300.00")
    assert page["total_transactions"] == 3
    assert page["transactions"][0].amount == Decimal("200.00")
    assert page["transactions"][0].description == "Refund order #3"


def test_reverse_unknown_transaction(ledger):
    with pytest.raises(NotFoundError):
        ledger.reverse(USER, 12345, "nope")


def test_transactions_are_paginated_newest_first(db, ledger):
    for i in range(1, 6):
        ledger.credit(USER, i, f"Top-up {i}")
    db.commit()

    first = ledger.transactions(USER, page=1, limit=2)
    last = ledger.transactions(USER, page=3, limit=2)

    assert first["total_pages"] == 3
    assert [t.description for t in first["transactions"]] == ["Top-up 5", "Top-up 4"]
    assert [t.description for t in last["transactions"]] == ["Top-up 1"]


def test_transactions_without_wallet(ledger):
    with pytest.raises(NotFoundError):
        ledger.transactions(999)


def test_summary_lists_recent_transactions(db, ledger):
    for i in range(12):
        ledger.credit(USER, 1, f"Top-up {i}")
    db.commit()

    summary = ledger.summary(USER)

    assert summary["balance"] == Decimal("12.00")
    assert len(summary["transactions"]) == 10

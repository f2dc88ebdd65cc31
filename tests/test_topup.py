from decimal import Decimal

import pytest

from giftcart.data.models.payment_intent import PaymentIntentModel
from giftcart.domain.errors import NotFoundError, SignatureMismatchError, ValidationError
from tests.conftest import sign

USER = 41


def test_topup_credits_wallet_once(db, topups, ledger, notifier):
    created = topups.create_topup(USER, Decimal("250"))

    intent = db.query(PaymentIntentModel).filter_by(intent_id=created["intent_id"]).one()
    assert intent.purpose == "WALLET_TOPUP"
    assert ledger.balance(USER) == Decimal("0.00")

    signature = sign(created["intent_id"], "pay_top")
    first = topups.verify_topup(USER, created["intent_id"], "pay_top", signature)
    second = topups.verify_topup(USER, created["intent_id"], "pay_top", signature)

    assert first["balance"] == Decimal("250.00")
    assert first["already_processed"] is False
    assert second["already_processed"] is True
    assert ledger.balance(USER) == Decimal("250.00")
    assert ledger.transactions(USER)["total_transactions"] == 1
    assert notifier.topups == [(USER, "250.00")]


def test_topup_with_bad_signature(topups, ledger):
    created = topups.create_topup(USER, Decimal("100"))

    with pytest.raises(SignatureMismatchError):
        topups.verify_topup(USER, created["intent_id"], "pay_top", "forged")

    assert ledger.balance(USER) == Decimal("0.00")


def test_topup_of_another_user_is_not_found(topups):
    created = topups.create_topup(USER, Decimal("100"))

    with pytest.raises(NotFoundError):
        topups.verify_topup(USER + 1, created["intent_id"], "pay_top", sign(created["intent_id"], "pay_top"))


def test_topup_below_minimum(topups):
    with pytest.raises(ValidationError):
        topups.create_topup(USER, Decimal("0.50"))

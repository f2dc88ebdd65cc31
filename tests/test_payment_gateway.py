import hashlib
import hmac
import logging
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from giftcart.data.models.payment_intent import PaymentIntentModel
from giftcart.domain.errors import PaymentGatewayError, SignatureMismatchError
from giftcart.services.payment_gateway import PaymentIntentGateway, compute_signature
from tests.conftest import SECRET, FakeGatewayClient, sign


def test_intent_amount_sent_in_minor_units(db, gateway, gateway_client):
    intent_id = gateway.create_intent(Decimal("700.00"), "INR", "order_rcpt_1", {"user_id": "1"}, user_id=1)
    db.commit()

    assert gateway_client.created[0]["amount"] == 70000
    intent = db.query(PaymentIntentModel).filter_by(intent_id=intent_id).one()
    assert intent.status == "CREATED"
    assert intent.amount == Decimal("700.00")
    assert intent.purpose == "ORDER"


def test_transport_failure_becomes_gateway_error(db):
    gateway = PaymentIntentGateway(db, FakeGatewayClient(fail=True), secret=SECRET)

    with pytest.raises(PaymentGatewayError):
        gateway.create_intent(Decimal("10"), "INR", "r", {}, user_id=1)

    assert db.query(PaymentIntentModel).count() == 0


def test_mismatched_gateway_response_is_rejected(db):
    client = MagicMock()
    client.create_order.return_value = {"id": "order_x", "amount": 1, "currency": "INR"}
    gateway = PaymentIntentGateway(db, client, secret=SECRET)

    with pytest.raises(PaymentGatewayError):
        gateway.create_intent(Decimal("10"), "INR", "r", {}, user_id=1)


def test_http_error_becomes_gateway_error(db):
    client = MagicMock()
    client.create_order.side_effect = requests.HTTPError("500 Server Error")
    gateway = PaymentIntentGateway(db, client, secret=SECRET)

    with pytest.raises(PaymentGatewayError):
        gateway.create_intent(Decimal("10"), "INR", "r", {}, user_id=1)


def test_signature_is_hmac_of_intent_and_ref():
    expected = hmac.new(b"secret", b"order_1|pay_1", hashlib.sha256).hexdigest()

    assert compute_signature("secret", "order_1", "pay_1") == expected
    assert compute_signature("secret", "order_1", "pay_2") != expected


def test_valid_signature_passes(gateway):
    assert gateway.verify_confirmation("order_1", "pay_1", sign("order_1", "pay_1"))


@pytest.mark.parametrize("signature", ["", "deadbeef", "ł" * 64, None])
def test_bad_signature_is_rejected_and_logged(gateway, caplog, signature):
    caplog.set_level(logging.WARNING, logger="giftcart")

    with pytest.raises(SignatureMismatchError) as exc:
        gateway.verify_confirmation("order_1", "pay_1", signature)

    assert exc.value.code == "invalid_signature"
    assert "[SECURITY]" in caplog.text


def test_empty_secret_never_verifies(db):
    gateway = PaymentIntentGateway(db, FakeGatewayClient(), secret="")

    with pytest.raises(SignatureMismatchError):
        gateway.verify_confirmation("order_1", "pay_1", compute_signature("", "order_1", "pay_1"))

from unittest.mock import MagicMock

from giftcart.services.lock_service import LockService


def make_service():
    client = MagicMock()
    return LockService(client=client), client


def test_acquire_uses_set_nx_with_ttl():
    service, client = make_service()
    client.set.return_value = True

    assert service.acquire("settlement:order:1:lock", "tok", 30)
    client.set.assert_called_once_with(name="settlement:order:1:lock", value="tok", nx=True, ex=30)


def test_acquire_returns_false_when_held():
    service, client = make_service()
    client.set.return_value = None

    assert service.acquire("k", "tok", 30) is False


def test_acquire_waiting_retries_until_free():
    service, client = make_service()
    client.set.side_effect = [None, None, True]

    assert service.acquire_waiting("k", "tok", 30, attempts=3)
    assert client.set.call_count == 3


def test_acquire_waiting_gives_up():
    service, client = make_service()
    client.set.return_value = None

    assert service.acquire_waiting("k", "tok", 30, attempts=2) is False
    assert client.set.call_count == 2


def test_release_only_by_owner():
    service, client = make_service()
    client.eval.return_value = 0

    assert service.release("k", "not-mine") is False
    args = client.eval.call_args.args
    assert args[1:] == (1, "k", "not-mine")


def test_keys():
    assert LockService.order_key(5) == "settlement:order:5:lock"
    assert LockService.intent_key("order_abc") == "settlement:intent:order_abc:lock"

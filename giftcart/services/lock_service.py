import uuid

import redis
from giftcart.utils.retry import redis_retry, lock_wait
from giftcart.utils.settings import REDIS_URL, SETTLEMENT_LOCK_WAIT_ATTEMPTS
from giftcart.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje atomowo przez lua, skrypt dziala jako jedna nieprzerywalna operacja
#nie mozna wcisnac sie miedzy GET a DEL, wiec tu jest get + porownanie + del wszystko naraz


class LockService:
    """
    -wzajemne wykluczanie rozliczen per zamowienie / intent
    -zwalnianie locka tylko przez wlasciciela (token)
    -atomowosc przy pomocy lua
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def new_token() -> str:
        return uuid.uuid4().hex

    @redis_retry()
    def acquire(self, key: str, token: str, ttl: int) -> bool:
        logger.info(f"Acquire lock {key}")
        #SET settlement:order:1 "<token>" NX EX 30
        return bool(
            self.redis.set(
                name=key,
                value=token,
                nx=True, #tylko jesli klucz nie istnieje
                ex=ttl, #wygasa sam gdy proces padnie w trakcie
            )
        )

    def acquire_waiting(self, key: str, token: str, ttl: int, attempts: int | None = None) -> bool:
        """Czeka na zwolnienie locka przez inny proces (np. zdublowany webhook)."""

        @lock_wait(attempts or SETTLEMENT_LOCK_WAIT_ATTEMPTS)
        def _try() -> bool:
            return self.acquire(key, token, ttl)

        return _try()

    @redis_retry()
    def release(self, key: str, token: str) -> bool:
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)

    @staticmethod
    def order_key(order_id: int) -> str:
        return f"settlement:order:{order_id}:lock"

    @staticmethod
    def intent_key(intent_id: str) -> str:
        return f"settlement:intent:{intent_id}:lock"

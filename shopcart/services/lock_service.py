# shopcart/services/lock_service.py
import uuid
from contextlib import contextmanager
from typing import Iterator

import redis
from tenacity import RetryError, retry, retry_if_result, stop_after_delay, wait_fixed

from shopcart.domain.errors import CartConflict, StorageFailure
from shopcart.utils.logging import get_logger
from shopcart.utils.retry import redis_retry
from shopcart.utils.settings import CART_LOCK_TTL_SECONDS, CART_LOCK_WAIT_SECONDS, REDIS_URL

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
#lock zwalnia tylko ten, kto go trzyma (token), wygasly lock przejety przez innego zostaje
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    -mutex na koszyk uzytkownika (SET NX EX)
    -zwalnianie locka tokenem
    -atomowosc przy pomocy lua
    """

    def __init__(
        self,
        url: str | None = None,
        client: redis.Redis | None = None,
        ttl: int = CART_LOCK_TTL_SECONDS,
        wait: float = CART_LOCK_WAIT_SECONDS,
    ):
        self.redis = client or redis.Redis.from_url(url or REDIS_URL, decode_responses=True)
        self.ttl = ttl
        self.wait = wait

    @staticmethod
    def _key(user_id: int) -> str:
        return f"cart:user:{user_id}:lock"

    @redis_retry()
    def acquire_cart_lock(self, user_id: int, token: str) -> bool:
        key = self._key(user_id)
        #SET cart:user:7:lock "<token>" NX EX 10
        return bool(self.redis.set(name=key, value=token, nx=True, ex=self.ttl))

    @redis_retry()
    def release_cart_lock(self, user_id: int, token: str) -> bool:
        key = self._key(user_id)
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)

    def _wait_for_lock(self, user_id: int, token: str) -> bool:
        poll = retry(
            stop=stop_after_delay(self.wait),
            wait=wait_fixed(0.05),
            retry=retry_if_result(lambda acquired: acquired is False),
        )
        try:
            return poll(self.acquire_cart_lock)(user_id, token)
        except RetryError:
            return False

    @contextmanager
    def cart_lock(self, user_id: int) -> Iterator[None]:
        """Serialize cart commands of one user across processes."""
        token = uuid.uuid4().hex
        try:
            acquired = self._wait_for_lock(user_id, token)
        except redis.RedisError as e:
            logger.error(f"Redis unavailable for cart lock of user {user_id}: {e}")
            raise StorageFailure("Cart lock store unavailable, retry later") from e

        if not acquired:
            logger.warning(f"Cart lock for user {user_id} busy after {self.wait}s")
            raise CartConflict(f"Cart of user {user_id} is busy, retry")

        logger.debug(f"Acquired cart lock for user {user_id}")
        try:
            yield
        finally:
            try:
                if not self.release_cart_lock(user_id, token):
                    logger.warning(f"Cart lock for user {user_id} expired before release")
            except redis.RedisError as e:
                # lock i tak wygasnie po TTL
                logger.warning(f"Failed to release cart lock for user {user_id}: {e}")

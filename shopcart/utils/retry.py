# shopcart/utils/retry.py
import redis
import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from shopcart.domain.errors import CartConflict


def http_retry():
    # tylko bledy transportu, 404 nie jest powodem do ponowienia
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def conflict_retry():
    """Re-run a cart command that lost the compare-and-swap on the cart version."""
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_random(min=0.01, max=0.1),
        retry=retry_if_exception_type(CartConflict),
    )

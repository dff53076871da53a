# app/utils/retry.py
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import requests
import redis

from app.domain.errors import ConcurrentModification
from app.utils.settings import CART_MAX_RETRIES


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(requests.RequestException),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


#konflikt wersji koszyka -> czytamy jeszcze raz i powtarzamy cala operacje
#po CART_MAX_RETRIES probach ConcurrentModification leci dalej
def conflict_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(CART_MAX_RETRIES),
        wait=wait_exponential(multiplier=0.02, min=0.02, max=0.2),
        retry=retry_if_exception_type(ConcurrentModification),
    )

import time

import redis

from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL
from app.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje skrypt lua atomowo, nie mozna wcisnac sie miedzy GET a DEL
#wiec zwalniamy tylko swoj lock, nigdy lock innego procesu ktory go przejal po TTL


class LockService:
    """
    Mutex w Redisie miedzy procesami/workerami:
    -acquire (SET NX EX)
    -release tylko przez wlasciciela (lua)
    -wait_acquire z limitem czasu
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @redis_retry()
    def acquire(self, key: str, owner: str, ttl: int) -> bool:
        logger.info(f"Acquire lock {key} for {owner}")
        #SET payment_intent:1:lock "<owner>" NX EX 60
        return bool(self.redis.set(
            name=key,
            value=owner,
            nx=True, #not eXists, jesli klucz jest to nic nie rob i None
            ex=ttl, #wygasa sam, martwy proces nie zablokuje zamowienia na zawsze
        ))

    @redis_retry()
    def release(self, key: str, owner: str) -> bool:
        logger.info(f"Release lock {key} for {owner}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, owner)
        return bool(res)

    def wait_acquire(self, key: str, owner: str, ttl: int, timeout: float, poll: float = 0.1) -> bool:
        deadline = time.monotonic() + timeout
        while True:
            if self.acquire(key, owner, ttl):
                return True
            if time.monotonic() >= deadline:
                logger.warning(f"Nie udalo sie zdobyc locka {key} w {timeout}s")
                return False
            time.sleep(poll)

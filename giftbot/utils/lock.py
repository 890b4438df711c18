from contextlib import contextmanager
import time
import uuid

from redis import Redis

from giftbot.core.errors import LockTimeout
from giftbot.observability.logging import log
from giftbot.settings import settings

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


@contextmanager
def key_lock(r: Redis, name: str, ttl_ms: int = None, wait_sec: float = None):
    """
    Distributed lock giving a single writer per key (order id, user id,
    inventory bucket). Waits at most `wait_sec` and raises LockTimeout
    instead of blocking forever. The TTL bounds how long a crashed holder
    can keep the key.
    """
    ttl_ms = int(ttl_ms or settings.LOCK_TTL_MS)
    wait_sec = float(settings.LOCK_WAIT_SEC if wait_sec is None else wait_sec)
    key = f"lock:{name}"
    token = uuid.uuid4().hex

    deadline = time.monotonic() + wait_sec
    acquired = bool(r.set(key, token, px=ttl_ms, nx=True))
    while not acquired:
        if time.monotonic() >= deadline:
            log("lock_timeout", lock=key, waitSec=wait_sec)
            raise LockTimeout(f"Could not acquire lock {key}")
        time.sleep(0.02)
        acquired = bool(r.set(key, token, px=ttl_ms, nx=True))

    try:
        yield
    finally:
        # Release only if we still own it
        try:
            r.eval(_RELEASE_SCRIPT, 1, key, token)
        except Exception as e:
            log("lock_release_failed", lock=key, error=str(e)[:200])

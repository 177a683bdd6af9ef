import contextlib
from functools import lru_cache

import redis
import structlog

from reviewguard.shared.settings import settings

log = structlog.get_logger(__name__)


class UserLockTimeout(Exception):
    pass


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url)


@contextlib.contextmanager
def user_lock(user_id: str, timeout: int | None = None):
    """Serialize fraud evaluations for one user (risk score + balances are per-user)."""
    if not settings.enable_user_locks:
        yield
        return

    timeout = timeout or settings.user_lock_timeout_seconds
    lock = get_redis().lock(f"antifraud:user:{user_id}", timeout=timeout, blocking_timeout=timeout)
    if not lock.acquire():
        log.warning("user_lock_timeout", user_id=user_id, timeout=timeout)
        raise UserLockTimeout(user_id)
    try:
        yield
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:
            # expired while we held it; the evaluation itself already finished
            log.warning("user_lock_expired", user_id=user_id)

import logging
import threading
import time
from contextlib import contextmanager

import redis
from django.conf import settings

logger = logging.getLogger(__name__)

SWEEP_LOCK_KEY = "sync_all_students"

_redis_client = None
_local_locks: dict[str, threading.Lock] = {}
_local_locks_guard = threading.Lock()


def get_redis_client():
    global _redis_client
    if _redis_client is None:
        url = getattr(settings, "REDIS_URL", "redis://localhost:6379/0")
        _redis_client = redis.Redis.from_url(url, socket_connect_timeout=2)
    return _redis_client


def _local_lock(key: str) -> threading.Lock:
    with _local_locks_guard:
        lock = _local_locks.get(key)
        if lock is None:
            lock = _local_locks[key] = threading.Lock()
        return lock


def acquire_lock(lock_key: str, ttl_seconds: int = 600) -> bool:
    """
    Non-blocking, expiring lock. Returns True when the caller owns the key.
    Without Redis the caller proceeds unlocked.
    """
    try:
        client = get_redis_client()
        return bool(client.set(lock_key, str(time.time()), nx=True, ex=ttl_seconds))
    except redis.RedisError:
        logger.exception("Lock failure for %s; continuing without lock.", lock_key)
        return True


def release_lock(lock_key: str) -> None:
    try:
        get_redis_client().delete(lock_key)
    except redis.RedisError:
        logger.exception("Could not release lock %s", lock_key)


@contextmanager
def student_sync_lock(student_id, timeout: int | None = None):
    """
    Serializes syncs of one student across workers. Blocks until the
    current holder finishes. Falls back to a per-process lock when Redis
    cannot be reached.
    """
    key = f"sync_student:{student_id}"
    if timeout is None:
        timeout = getattr(settings, "SYNC_LOCK_TIMEOUT_SECONDS", 300)

    try:
        lock = get_redis_client().lock(key, timeout=timeout, blocking_timeout=timeout)
        acquired = lock.acquire(blocking=True)
    except redis.RedisError as exc:
        logger.warning("Redis lock unavailable for %s (%s); using process-local lock.", key, exc)
        lock = None
        acquired = False

    if lock is None:
        with _local_lock(key):
            yield
        return

    if not acquired:
        raise TimeoutError(f"Timed out waiting for {key}")
    try:
        yield
    finally:
        try:
            lock.release()
        except redis.RedisError:
            logger.exception("Could not release lock %s", key)

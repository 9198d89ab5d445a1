from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Dict, Iterator, Optional

from redis import Redis

from clubdesk.core.config import settings
from clubdesk.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_LOCAL_LOCKS: Dict[str, threading.Lock] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()


def _slot_key(slot_id: str) -> str:
    return f"makeup:slot:{slot_id}:mutex"


def _namespaced_key(key: str) -> str:
    return f"clubdesk:lock:{key}"


def _local_lock(key: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        lock = _LOCAL_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _LOCAL_LOCKS[key] = lock
        return lock


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        if not settings.redis_url:
            return None
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("makeup_lock_sync_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_redis_lock(key: str, ttl_s: int) -> bool:
    """
    Try once to take a Redis lock. Returns True when Redis is unreachable so
    the process-local lock remains the guard.
    """
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_makeup_lock("acquire", "redis_unavailable")
        logger.warning("makeup_lock_redis_unavailable", extra={"lock_key": key})
        return True
    try:
        acquired = bool(client.set(_namespaced_key(key), str(time.time()), nx=True, ex=ttl_s))
        prometheus_metrics.record_makeup_lock("acquire", "success" if acquired else "blocked")
        return acquired
    except Exception as exc:
        prometheus_metrics.record_makeup_lock("acquire", "error")
        logger.warning(
            "makeup_lock_redis_failed",
            extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
        )
        return True


def release_redis_lock(key: str) -> None:
    client = _get_sync_redis()
    if client is None:
        return
    try:
        deleted = client.delete(_namespaced_key(key))
        prometheus_metrics.record_makeup_lock("release", "success" if deleted else "not_found")
    except Exception as exc:
        prometheus_metrics.record_makeup_lock("release", "error")
        logger.warning(
            "makeup_lock_redis_release_failed",
            extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
        )


@contextmanager
def named_lock(
    key: str,
    *,
    ttl_s: Optional[int] = None,
    wait_s: Optional[float] = None,
    distributed: Optional[bool] = None,
) -> Iterator[bool]:
    """
    Hold a lock named ``key`` for the duration of the block.

    Yields False if the lock could not be taken within ``wait_s``; the caller
    decides how to surface that.
    """
    ttl = ttl_s if ttl_s is not None else settings.makeup_lock_ttl_seconds
    wait = wait_s if wait_s is not None else settings.makeup_lock_wait_seconds
    use_redis = settings.distributed_locks_enabled if distributed is None else distributed

    local = _local_lock(key)
    deadline = time.monotonic() + wait
    if not local.acquire(timeout=wait):
        prometheus_metrics.record_makeup_lock("acquire", "timeout")
        yield False
        return

    redis_held = False
    try:
        if use_redis:
            while True:
                if acquire_redis_lock(key, ttl):
                    redis_held = True
                    break
                if time.monotonic() >= deadline:
                    prometheus_metrics.record_makeup_lock("acquire", "timeout")
                    break
                time.sleep(0.05)
            if not redis_held:
                yield False
                return
        yield True
    finally:
        if redis_held:
            release_redis_lock(key)
        local.release()


@contextmanager
def makeup_slot_lock(slot_id: str) -> Iterator[bool]:
    """Serialize check-and-reserve of makeup seats on one slot."""
    with named_lock(_slot_key(slot_id)) as acquired:
        yield acquired

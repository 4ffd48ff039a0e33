# ============================================================================
# app/services/booking/locks.py
# Keyed serialization points for the two writes of the engine
# ============================================================================
"""
Admission and vote upserts are check-then-act, so writers that share a key
must run one at a time. ``local`` serializes threads of one process, ``redis``
serializes every process sharing the Redis instance. Either way the database
transaction stays the final authority (row lock / unique constraint).
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional

from redis.exceptions import LockError

from app.config.settings import get_settings

logger = logging.getLogger(__name__)


class LockTimeout(Exception):
    def __init__(self, key: str):
        super().__init__(f"Timed out waiting for lock {key}")
        self.key = key


class LocalKeyedLock:
    """Per-key threading locks; entries are dropped once nobody waits on them."""

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[str, List] = {}  # key -> [lock, waiters]

    @contextmanager
    def hold(self, key: str, timeout: float):
        with self._guard:
            entry = self._entries.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1

        acquired = entry[0].acquire(timeout=timeout)
        try:
            if not acquired:
                raise LockTimeout(key)
            yield
        finally:
            if acquired:
                entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._entries.pop(key, None)

    def __len__(self):
        return len(self._entries)


class RedisKeyedLock:
    """Distributed variant backed by redis-py's Lock."""

    def __init__(self, client=None, lease_seconds: float = 30.0):
        if client is None:
            from app.config.redis import get_redis
            client = get_redis()
        self.client = client
        self.lease_seconds = lease_seconds

    @contextmanager
    def hold(self, key: str, timeout: float):
        lock = self.client.lock(key, timeout=self.lease_seconds, blocking_timeout=timeout)
        if not lock.acquire():
            raise LockTimeout(key)
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                # lease expired while held
                logger.warning(f"Redis lock {key} expired before release")


_keyed_lock = None
_keyed_lock_guard = threading.Lock()


def get_keyed_lock():
    """Process-wide lock registry for the configured backend"""
    global _keyed_lock
    with _keyed_lock_guard:
        if _keyed_lock is None:
            backend = get_settings().BOOKING_LOCK_BACKEND.lower()
            if backend == "redis":
                _keyed_lock = RedisKeyedLock()
            elif backend == "local":
                _keyed_lock = LocalKeyedLock()
            else:
                raise ValueError(f"Unknown BOOKING_LOCK_BACKEND '{backend}'")
            logger.info(f"Using {backend} keyed locks for admission")
        return _keyed_lock


def set_keyed_lock(lock: Optional[object]) -> None:
    """Swap the registry (tests, or wiring a shared Redis client)"""
    global _keyed_lock
    with _keyed_lock_guard:
        _keyed_lock = lock

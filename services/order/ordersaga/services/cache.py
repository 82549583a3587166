import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from redis import Redis

from ordersaga.core.config import Settings

def order_key(order_id: str) -> str:
    return f"orders:{order_id}"

def user_orders_key(user_id: str) -> str:
    return f"orders:user:{user_id}"

class Cache(ABC):
    """Disposable view over the order store. Callers treat every call as best-effort."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    def set(self, key: str, value: str, ttl: int) -> None: ...

    @abstractmethod
    def invalidate(self, key: str) -> None: ...

class RedisCache(Cache):

    def __init__(self, client: Redis):
        self._r = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(Redis.from_url(url, decode_responses=True, socket_timeout=2, socket_connect_timeout=2))

    def get(self, key: str) -> Optional[str]:
        return self._r.get(key)

    def set(self, key: str, value: str, ttl: int) -> None:
        self._r.setex(key, ttl, value)

    def invalidate(self, key: str) -> None:
        self._r.delete(key)

class MemoryCache(Cache):
    """Process-local cache for single-node runs without Redis."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            hit = self._data.get(key)
            if hit is None:
                return None
            value, expires_at = hit
            if expires_at <= self._clock():
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + ttl)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

def build_cache(cfg: Settings) -> Cache:
    backend = cfg.CACHE_BACKEND.lower()
    if backend == "memory":
        return MemoryCache()
    if backend == "redis":
        return RedisCache.from_url(cfg.REDIS_URL)
    raise ValueError(f"Unknown CACHE_BACKEND {cfg.CACHE_BACKEND!r} (expected 'redis' or 'memory')")

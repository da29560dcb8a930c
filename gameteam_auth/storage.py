"""
Key/value persistence backends.

The engine persists three independent entries (access token, user identity,
pending action). Any object exposing ``get``/``set``/``delete`` and an atomic
read-and-delete ``take`` with string values can back the stores; two are
provided:

- ``MemoryStorage``: process-local dict, the default when no Redis is configured
- ``RedisStorage``: shared Redis instance so several processes see the same session
"""

import logging
from typing import Dict, Optional, Protocol

logger = logging.getLogger("gameteam.storage")


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, *keys: str) -> None: ...

    def take(self, key: str) -> Optional[str]: ...


class MemoryStorage:
    """In-process storage. Nothing survives the interpreter."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    def take(self, key: str) -> Optional[str]:
        return self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class RedisStorage:
    """Storage backed by Redis string keys."""

    def __init__(self, redis_client=None):
        """
        Args:
            redis_client: Redis client (built on first use when None)
        """
        self._redis_client = redis_client

    def _get_redis_client(self):
        if self._redis_client is None:
            from .redis_client import get_redis
            self._redis_client = get_redis()
        return self._redis_client

    def get(self, key: str) -> Optional[str]:
        value = self._get_redis_client().get(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        self._get_redis_client().set(key, value)

    def take(self, key: str) -> Optional[str]:
        # GETDEL (Redis >= 6.2): only one reader across processes gets the value
        value = self._get_redis_client().getdel(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def delete(self, *keys: str) -> None:
        if keys:
            self._get_redis_client().delete(*keys)
            logger.debug("storage_delete keys=%s", ",".join(keys))


def build_storage(backend: str) -> KeyValueStorage:
    if backend == "redis":
        return RedisStorage()
    if backend == "memory":
        return MemoryStorage()
    raise ValueError(f"Unknown storage backend: {backend}")

"""
Key-value storage for short-lived records (OTP codes, opaque sessions).

MemoryStore keeps everything in the process and is the default. RedisStore
shares records between instances and lets Redis expire them.
"""
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from redis import Redis
from redis.exceptions import RedisError

from ..exceptions import UpstreamError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Values are JSON-compatible dicts with an absolute expiry instant."""

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def set(self, key: str, value: Dict[str, Any], expires_at: datetime) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    def sweep_expired(self, now: datetime) -> int:
        """Drop every record whose expiry is before `now`. Returns the count."""


class MemoryStore(KeyValueStore):

    def __init__(self):
        self._data: Dict[str, Tuple[Dict[str, Any], datetime]] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        # Callers mutate what they read; hand out a copy
        return dict(entry[0])

    def set(self, key: str, value: Dict[str, Any], expires_at: datetime) -> None:
        self._data[key] = (dict(value), expires_at)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def sweep_expired(self, now: datetime) -> int:
        expired = [key for key, (_, expires_at) in self._data.items() if expires_at < now]
        for key in expired:
            del self._data[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._data)


class RedisStore(KeyValueStore):
    """Records are stored as JSON strings with a Redis TTL matching expires_at."""

    def __init__(self, client: Redis, namespace: str = "panchayat"):
        self.client = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = self.client.get(self._key(key))
        except RedisError as e:
            logger.error(f"Redis read failed for {key}: {e}")
            raise UpstreamError("Session store unavailable")
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Dict[str, Any], expires_at: datetime) -> None:
        ttl = int((expires_at - datetime.now(timezone.utc)).total_seconds())
        try:
            self.client.set(self._key(key), json.dumps(value, default=str), ex=max(ttl, 1))
        except RedisError as e:
            logger.error(f"Redis write failed for {key}: {e}")
            raise UpstreamError("Session store unavailable")

    def delete(self, key: str) -> bool:
        try:
            return bool(self.client.delete(self._key(key)))
        except RedisError as e:
            logger.error(f"Redis delete failed for {key}: {e}")
            raise UpstreamError("Session store unavailable")

    def sweep_expired(self, now: datetime) -> int:
        # Redis evicts on TTL
        return 0

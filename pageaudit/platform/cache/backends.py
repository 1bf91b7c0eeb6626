"""
Storage backends for the cache manager.

Backends only store and return entries; expiry decisions are taken by the
CacheManager, which owns the clock. Redis expiry is set as a second guard.
"""
import base64
import binascii
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

import redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


class MemoryCacheBackend:
    """Thread-safe in-process dict backend."""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def set(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[entry.key] = entry

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def entries(self, prefix: str = "") -> Iterator[CacheEntry]:
        with self._lock:
            snapshot = [e for k, e in self._entries.items() if k.startswith(prefix)]
        return iter(snapshot)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count


class RedisCacheBackend:
    """
    Redis backend. Each entry is a JSON envelope holding the value together
    with created_at and ttl; bytes values are base64 encoded.
    """

    def __init__(self, client: redis.Redis, namespace: str = "pageaudit:cache:"):
        self.client = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisCacheBackend":
        return cls(redis.Redis.from_url(url, decode_responses=True), **kwargs)

    def _k(self, key: str) -> str:
        return f"{self.namespace}{key}"

    @staticmethod
    def _encode(entry: CacheEntry) -> str:
        if isinstance(entry.value, (bytes, bytearray)):
            payload, encoding = base64.b64encode(bytes(entry.value)).decode("ascii"), "bytes"
        else:
            payload, encoding = entry.value, "json"
        return json.dumps(
            {
                "key": entry.key,
                "value": payload,
                "encoding": encoding,
                "created_at": entry.created_at,
                "ttl": entry.ttl,
            }
        )

    @staticmethod
    def _decode(raw: str) -> CacheEntry:
        envelope = json.loads(raw)
        value = envelope["value"]
        if envelope.get("encoding") == "bytes":
            value = base64.b64decode(value)
        return CacheEntry(
            key=envelope["key"],
            value=value,
            created_at=float(envelope["created_at"]),
            ttl=float(envelope["ttl"]),
        )

    def get(self, key: str) -> Optional[CacheEntry]:
        raw = self.client.get(self._k(key))
        if raw is None:
            return None
        return self._decode(raw)

    def set(self, entry: CacheEntry) -> None:
        expiry_ms = max(1, int(entry.ttl * 1000))
        self.client.set(self._k(entry.key), self._encode(entry), px=expiry_ms)

    def delete(self, key: str) -> bool:
        return bool(self.client.delete(self._k(key)))

    def delete_prefix(self, prefix: str) -> int:
        removed = 0
        for redis_key in self.client.scan_iter(match=f"{self._k(prefix)}*"):
            removed += self.client.delete(redis_key)
        return removed

    def entries(self, prefix: str = "") -> Iterator[CacheEntry]:
        for redis_key in self.client.scan_iter(match=f"{self._k(prefix)}*"):
            raw = self.client.get(redis_key)
            if raw is None:
                continue
            try:
                entry = self._decode(raw)
            except (ValueError, KeyError, TypeError, binascii.Error) as e:
                logger.warning(f"Dropping undecodable cache entry {redis_key}: {e}")
                self.client.delete(redis_key)
                continue
            yield entry

    def clear(self) -> int:
        return self.delete_prefix("")

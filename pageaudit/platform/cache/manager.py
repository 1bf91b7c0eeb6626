"""
TTL cache for computed reports and generated artifacts.

Two keyspaces are kept apart:
- analysis: report pairs keyed by a hash of the normalized target URL, and
  the same payload keyed by analysis id for later reads (24 h by default)
- artifact: rendered documents keyed by (analysis_id, language) (1 h by default)

Entries are checked for expiry on every read and removed in bulk by a
periodic sweep. Backend failures never reach the caller: they are logged and
treated as a miss or a no-op.
"""
import threading
import time
from typing import Any, Callable, Dict, Optional

from pageaudit.platform.cache.backends import CacheEntry, MemoryCacheBackend, RedisCacheBackend
from pageaudit.platform.logger import get_logger
from pageaudit.platform.utils.url_validator import url_cache_key

logger = get_logger(__name__)

ANALYSIS = "analysis"
ARTIFACT = "artifact"


class CacheManager:
    def __init__(
        self,
        backend=None,
        analysis_ttl: float = 24 * 60 * 60,
        artifact_ttl: float = 60 * 60,
        sweep_interval: float = 30 * 60,
        clock: Callable[[], float] = time.time,
        enabled: bool = True,
    ):
        self.backend = backend if backend is not None else MemoryCacheBackend()
        self.ttls = {ANALYSIS: float(analysis_ttl), ARTIFACT: float(artifact_ttl)}
        self.sweep_interval = float(sweep_interval)
        self.clock = clock
        self.enabled = enabled

        self.hits = 0
        self.misses = 0
        self.errors = 0

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ── generic operations ─────────────────────

    @staticmethod
    def _full_key(keyspace: str, key: str) -> str:
        if keyspace not in (ANALYSIS, ARTIFACT):
            raise ValueError(f"Unknown cache keyspace: {keyspace}")
        return f"{keyspace}:{key}"

    def get(self, keyspace: str, key: str) -> Optional[Any]:
        full_key = self._full_key(keyspace, key)
        if not self.enabled:
            return None
        try:
            entry = self.backend.get(full_key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired(self.clock()):
                self.backend.delete(full_key)
                self.misses += 1
                logger.info(f"Expired cache entry removed: {full_key}")
                return None
        except Exception as e:
            self.errors += 1
            self.misses += 1
            logger.error(f"Cache read failed for {full_key}: {e}")
            return None

        self.hits += 1
        return entry.value

    def set(self, keyspace: str, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        full_key = self._full_key(keyspace, key)
        if not self.enabled:
            return False
        entry = CacheEntry(
            key=full_key,
            value=value,
            created_at=self.clock(),
            ttl=float(ttl if ttl is not None else self.ttls[keyspace]),
        )
        try:
            self.backend.set(entry)
        except Exception as e:
            self.errors += 1
            logger.error(f"Cache write failed for {full_key}: {e}")
            return False
        logger.debug(f"Cached {full_key} (ttl={entry.ttl}s)")
        return True

    def delete(self, keyspace: str, key: str) -> bool:
        full_key = self._full_key(keyspace, key)
        try:
            return self.backend.delete(full_key)
        except Exception as e:
            self.errors += 1
            logger.error(f"Cache delete failed for {full_key}: {e}")
            return False

    # ── analysis / artifact helpers ─────────────

    @staticmethod
    def url_key(url: str, language: str) -> str:
        return f"url:{url_cache_key(url)}:{language}"

    @staticmethod
    def id_key(analysis_id: str) -> str:
        return f"id:{analysis_id}"

    @staticmethod
    def artifact_key(analysis_id: str, language: str = "en") -> str:
        return f"{analysis_id}_{language}"

    def get_analysis(self, url: str, language: str) -> Optional[Dict[str, Any]]:
        return self.get(ANALYSIS, self.url_key(url, language))

    def set_analysis(self, url: str, language: str, analysis_id: str, payload: Dict[str, Any]) -> bool:
        by_url = self.set(ANALYSIS, self.url_key(url, language), payload)
        by_id = self.set(ANALYSIS, self.id_key(analysis_id), payload)
        if by_url and by_id:
            logger.info(f"[{analysis_id}] Analysis cached for {url}")
        return by_url and by_id

    def get_analysis_by_id(self, analysis_id: str) -> Optional[Dict[str, Any]]:
        return self.get(ANALYSIS, self.id_key(analysis_id))

    def get_artifact(self, analysis_id: str, language: str = "en") -> Optional[bytes]:
        return self.get(ARTIFACT, self.artifact_key(analysis_id, language))

    def set_artifact(self, analysis_id: str, data: bytes, language: str = "en") -> bool:
        return self.set(ARTIFACT, self.artifact_key(analysis_id, language), data)

    def clear_analysis(self, analysis_id: str, url: Optional[str] = None) -> int:
        """Drop an analysis, its URL entries when url is given, and every artifact derived from it."""
        cleared = 0
        try:
            if self.backend.delete(self._full_key(ANALYSIS, self.id_key(analysis_id))):
                cleared += 1
            if url is not None:
                cleared += self.backend.delete_prefix(
                    self._full_key(ANALYSIS, f"url:{url_cache_key(url)}:")
                )
            cleared += self.backend.delete_prefix(self._full_key(ARTIFACT, f"{analysis_id}_"))
        except Exception as e:
            self.errors += 1
            logger.error(f"[{analysis_id}] Failed to clear cache: {e}")
            return cleared

        if cleared:
            logger.info(f"[{analysis_id}] Cleared {cleared} cache entries")
        return cleared

    def clear_all(self) -> int:
        try:
            return self.backend.clear()
        except Exception as e:
            self.errors += 1
            logger.error(f"Failed to clear all caches: {e}")
            return 0

    # ── maintenance ─────────────────────────────

    def sweep(self) -> int:
        """Physically remove expired entries. Returns how many were removed."""
        now = self.clock()
        removed = 0
        try:
            for entry in list(self.backend.entries()):
                if entry.is_expired(now) and self.backend.delete(entry.key):
                    removed += 1
        except Exception as e:
            self.errors += 1
            logger.error(f"Cache sweep failed: {e}")
            return removed

        if removed:
            logger.info(f"Cache sweep removed {removed} expired entries")
        return removed

    def stats(self) -> Dict[str, Any]:
        now = self.clock()
        result: Dict[str, Any] = {
            "enabled": self.enabled,
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
        }
        for keyspace in (ANALYSIS, ARTIFACT):
            valid = expired = 0
            try:
                for entry in self.backend.entries(f"{keyspace}:"):
                    if entry.is_expired(now):
                        expired += 1
                    else:
                        valid += 1
            except Exception as e:
                self.errors += 1
                logger.error(f"Failed to collect cache stats for {keyspace}: {e}")
            result[keyspace] = {
                "total": valid + expired,
                "valid": valid,
                "expired": expired,
                "ttl": self.ttls[keyspace],
            }
        return result

    # ── lifecycle ───────────────────────────────

    def _sweep_loop(self):
        while not self._stop_event.wait(self.sweep_interval):
            self.sweep()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._sweep_loop, name="cache-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Cache sweep started (every {self.sweep_interval:.0f}s)")

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout=5)
        self._thread = None
        logger.info("Cache sweep stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


def build_cache_manager(settings) -> CacheManager:
    if settings.CACHE_BACKEND == "redis":
        backend = RedisCacheBackend.from_url(settings.REDIS_URL)
    else:
        backend = MemoryCacheBackend()

    return CacheManager(
        backend=backend,
        analysis_ttl=settings.ANALYSIS_CACHE_TTL_SECONDS,
        artifact_ttl=settings.ARTIFACT_CACHE_TTL_SECONDS,
        sweep_interval=settings.CACHE_SWEEP_INTERVAL_SECONDS,
        enabled=settings.CACHE_ENABLED,
    )


_cache_manager: Optional[CacheManager] = None


def get_cache_manager() -> CacheManager:
    """Process-wide cache manager, built from settings on first use."""
    global _cache_manager

    if _cache_manager is None:
        from pageaudit.platform.config import settings

        _cache_manager = build_cache_manager(settings)
    return _cache_manager


def set_cache_manager(manager: Optional[CacheManager]) -> None:
    global _cache_manager
    _cache_manager = manager

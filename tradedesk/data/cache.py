"""
Market data cache with per-entry expiry and durable snapshots.

Entries live in an in-memory map. The whole map is mirrored to a snapshot
store (local file or Redis) so cached data survives a restart.
"""

import asyncio
import copy
import json
import logging
import os
import random
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

import redis

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class SnapshotStore(ABC):
    """Durable blob storage keyed by namespace."""

    @abstractmethod
    def load(self, namespace: str) -> Optional[str]:
        """Return the stored blob or None."""

    @abstractmethod
    def save(self, namespace: str, blob: str) -> None:
        """Replace the stored blob."""


class MemorySnapshotStore(SnapshotStore):
    """Process-local snapshot store, used in tests and development."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.blobs: Dict[str, str] = dict(initial or {})
        self.save_count = 0

    def load(self, namespace: str) -> Optional[str]:
        return self.blobs.get(namespace)

    def save(self, namespace: str, blob: str) -> None:
        self.blobs[namespace] = blob
        self.save_count += 1


class FileSnapshotStore(SnapshotStore):
    """One JSON file per namespace under a directory."""

    def __init__(self, directory: str):
        self.directory = Path(directory).expanduser()

    def _path(self, namespace: str) -> Path:
        return self.directory / f"{namespace}.json"

    def load(self, namespace: str) -> Optional[str]:
        path = self._path(namespace)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def save(self, namespace: str, blob: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(namespace)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(blob, encoding="utf-8")
        os.replace(tmp_path, path)


class RedisSnapshotStore(SnapshotStore):
    """Snapshot blobs stored as plain Redis strings."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: str = "tradedesk:snapshot:",
        client: Optional["redis.Redis"] = None,
    ):
        """
        Initialize Redis snapshot store.

        Args:
            redis_url: Redis connection URL
            key_prefix: Prefix for snapshot keys
            client: Pre-built client, overrides redis_url
        """
        self.key_prefix = key_prefix
        self.redis_client = client or redis.from_url(redis_url)

    def _make_key(self, namespace: str) -> str:
        return f"{self.key_prefix}{namespace}"

    def load(self, namespace: str) -> Optional[str]:
        data = self.redis_client.get(self._make_key(namespace))
        if data is None:
            return None
        return data.decode() if isinstance(data, bytes) else str(data)

    def save(self, namespace: str, blob: str) -> None:
        self.redis_client.set(self._make_key(namespace), blob)


@dataclass(frozen=True)
class CacheEntry:
    """Immutable cached payload; replaced on refresh, never mutated."""

    key: str
    value: Any
    created_at: float
    ttl: float

    def age(self, now: float) -> float:
        return now - self.created_at

    def is_expired(self, now: float) -> bool:
        return self.age(now) >= self.ttl

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "created_at": self.created_at, "ttl": self.ttl}


class CacheStore:
    """
    Key-value cache with per-entry TTL.

    Reads return deep copies and never delete; stale entries are removed by
    ``sweep`` or when overwritten. Writes persist the full map to the snapshot
    store with probability ``persist_probability``.
    """

    def __init__(
        self,
        snapshot_store: Optional[SnapshotStore] = None,
        namespace: str = "market_data_cache",
        default_ttl: float = 300,
        persist_probability: float = 0.1,
        clock: Callable[[], float] = time.time,
        rng: Callable[[], float] = random.random,
    ):
        """
        Initialize cache store.

        Args:
            snapshot_store: Durable store for restart survival (None disables)
            namespace: Snapshot namespace
            default_ttl: Default time-to-live in seconds
            persist_probability: Chance that a write triggers a snapshot
            clock: Wall-clock time source (epoch seconds)
            rng: Uniform [0, 1) source used for persistence sampling
        """
        if not 0.0 <= persist_probability <= 1.0:
            raise ValueError("persist_probability must be between 0 and 1")

        self.snapshot_store = snapshot_store
        self.namespace = namespace
        self.default_ttl = default_ttl
        self.persist_probability = persist_probability
        self._clock = clock
        self._rng = rng
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

        if self.snapshot_store is not None:
            self.load()

    def get(self, key: str) -> Optional[Any]:
        """
        Get a fresh value from cache.

        Args:
            key: Cache key

        Returns:
            Deep copy of the cached value, or None if missing or expired
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(self._clock()):
                self.misses += 1
                logger.debug(f"Cache miss for {key}")
                return None
            self.hits += 1
            value = entry.value

        logger.debug(f"Cache hit for {key}")
        return copy.deepcopy(value)

    def get_stale(self, key: str) -> Optional[Any]:
        """Get a value regardless of its age."""
        with self._lock:
            entry = self._entries.get(key)
            value = entry.value if entry is not None else None
        return copy.deepcopy(value)

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store a value, replacing any existing entry.

        Replacing an expired entry is how a write collision evicts it; other
        expired entries are left for ``sweep``.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Time-to-live in seconds
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(key, copy.deepcopy(value), now, ttl)

        if self.snapshot_store is not None and self._rng() < self.persist_probability:
            self._schedule_persist()

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def sweep(self) -> int:
        """
        Remove expired entries and persist the snapshot.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        self.persist()
        return len(expired)

    def _serialize(self) -> str:
        with self._lock:
            entries = {key: entry.to_dict() for key, entry in self._entries.items()}
        return json.dumps({"version": SNAPSHOT_VERSION, "entries": entries}, default=str)

    def persist(self) -> bool:
        """Write the full map to the snapshot store."""
        if self.snapshot_store is None:
            return False

        try:
            blob = self._serialize()
            self.snapshot_store.save(self.namespace, blob)
            return True
        except Exception as e:
            logger.error(f"Failed to persist cache snapshot {self.namespace}: {e}")
            return False

    def _schedule_persist(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.persist()
            return
        loop.run_in_executor(None, self.persist)

    def load(self) -> int:
        """
        Seed the map from the snapshot store, dropping entries already expired.

        Returns:
            Number of entries loaded
        """
        if self.snapshot_store is None:
            return 0

        try:
            blob = self.snapshot_store.load(self.namespace)
        except Exception as e:
            logger.warning(f"Failed to read cache snapshot {self.namespace}: {e}")
            return 0

        if not blob:
            return 0

        try:
            data = json.loads(blob)
            raw_entries = data.get("entries", {})
        except (json.JSONDecodeError, AttributeError) as e:
            logger.warning(f"Discarding unreadable cache snapshot {self.namespace}: {e}")
            return 0

        now = self._clock()
        loaded = 0
        with self._lock:
            for key, raw in raw_entries.items():
                try:
                    entry = CacheEntry(
                        key, raw["value"], float(raw["created_at"]), float(raw["ttl"])
                    )
                except (KeyError, TypeError, ValueError):
                    logger.warning(f"Skipping malformed snapshot entry {key}")
                    continue
                if entry.is_expired(now):
                    continue
                self._entries[key] = entry
                loaded += 1

        logger.info(f"Loaded {loaded} of {len(raw_entries)} cached items from snapshot")
        return loaded

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        with self._lock:
            expired = sum(1 for e in self._entries.values() if e.is_expired(now))
            total = len(self._entries)

        return {
            "backend": type(self.snapshot_store).__name__ if self.snapshot_store else "memory",
            "active_keys": total - expired,
            "expired_keys": expired,
            "total_keys": total,
            "hits": self.hits,
            "misses": self.misses,
        }


def _join(parts: Iterable[str]) -> str:
    return "_".join(parts)


def quotes_key(symbols: Iterable[str]) -> str:
    """Order-independent key for a quote batch."""
    return f"stocks_{_join(sorted({s.upper().strip() for s in symbols}))}"


def chart_key(symbol: str, interval: str, range_: str) -> str:
    return f"chart_{symbol.upper()}_{interval}_{range_}"


def news_key(symbol: str) -> str:
    return f"news_{symbol.upper()}"


def search_key(query: str) -> str:
    return f"search_{query.strip().upper()}"

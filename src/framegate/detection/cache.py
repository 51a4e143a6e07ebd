"""
Result Cache
============

Time-limited, size-bounded cache of detection results keyed by a frame
fingerprint.

Fingerprint:
    CRC-32 over the first `prefix_bytes` bytes of the encoded frame. Two
    JPEGs that share a header and first scanlines map to the same key and
    reuse a recent result until the entry expires after `ttl`. Raise
    `prefix_bytes` to lower the collision rate.

Eviction:
    - Lazy TTL expiry on read (age >= ttl is a miss)
    - FIFO on capacity: the oldest *inserted* entry goes first; reads do not
      refresh an entry's position
"""

import logging
import time
import zlib
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from framegate.models.detection import Detection


logger = logging.getLogger(__name__)


DEFAULT_PREFIX_BYTES = 1000


def fingerprint(data: bytes, prefix_bytes: int = DEFAULT_PREFIX_BYTES) -> str:
    """
    Fixed-width, non-cryptographic key for an encoded frame.

    Args:
        data: Encoded image bytes
        prefix_bytes: Number of leading bytes hashed

    Returns:
        8 hex digit CRC-32 of the prefix
    """
    if prefix_bytes < 1:
        raise ValueError("prefix_bytes must be >= 1")
    return f"{zlib.crc32(data[:prefix_bytes]) & 0xFFFFFFFF:08x}"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Cached detection result."""

    key: str
    detections: tuple[Detection, ...]
    inserted_at: float


class ResultCache:
    """
    FIFO + TTL cache of detection results.

    Attributes:
        max_entries: Capacity before FIFO eviction
        ttl: Entry lifetime in seconds

    Example:
        cache = ResultCache(max_entries=50, ttl=5.0)
        key = fingerprint(sample.encoded)

        cached = cache.get(key)
        if cached is None:
            detections = await service_call()
            cache.put(key, detections)
    """

    def __init__(
        self,
        max_entries: int = 50,
        ttl: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize result cache.

        Args:
            max_entries: Maximum number of entries (>= 1)
            ttl: Entry lifetime in seconds (> 0)
            clock: Time source in seconds
        """
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if ttl <= 0:
            raise ValueError("ttl must be > 0")

        self.max_entries = max_entries
        self.ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

        self.hits: int = 0
        self.misses: int = 0
        self.evictions: int = 0
        self.expirations: int = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[list[Detection]]:
        """
        Look up a result.

        Returns:
            Cached detections, or None on miss/expiry
        """
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        if self._clock() - entry.inserted_at >= self.ttl:
            del self._entries[key]
            self.expirations += 1
            self.misses += 1
            logger.debug(f"Cache entry expired: {key}")
            return None

        self.hits += 1
        return list(entry.detections)

    def put(self, key: str, detections: Sequence[Detection]) -> bool:
        """
        Store a non-empty result.

        Returns:
            True if stored, False if the result was empty
        """
        if not detections:
            return False

        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.debug(f"Cache full, evicted oldest entry: {evicted_key}")

        self._entries[key] = CacheEntry(
            key=key,
            detections=tuple(detections),
            inserted_at=self._clock(),
        )
        return True

    def purge_expired(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items()
            if now - entry.inserted_at >= self.ttl
        ]
        for key in expired:
            del self._entries[key]
        self.expirations += len(expired)
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def metrics(self) -> dict:
        """Cache metrics for observability."""
        return {
            "size": len(self._entries),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
        }

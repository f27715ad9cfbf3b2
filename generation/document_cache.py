# generation/document_cache.py
"""In-process cache of generated document bundles."""

from __future__ import annotations

import itertools
import time
from collections.abc import Sequence
from dataclasses import dataclass, field, replace

import structlog

from config import settings
from models.document_models import DocumentResult, count_successes

from .fingerprint import RequestFingerprint

logger = structlog.get_logger(__name__)


@dataclass
class CacheEntry:
    fingerprint: RequestFingerprint
    bundle: tuple[DocumentResult, ...]
    created_at: float
    hit_count: int = 0
    # insertion order, breaks created_at ties on coarse clocks
    sequence: int = field(default=0, repr=False)


@dataclass(frozen=True)
class CacheStats:
    size: int
    max_size: int
    total_hits: int
    avg_hits_per_entry: float


def _copy_bundle(bundle: Sequence[DocumentResult]) -> tuple[DocumentResult, ...]:
    return tuple(result.model_copy(deep=True) for result in bundle)


class DocumentCache:
    """Bounded fingerprint -> bundle cache with hit-weighted eviction.

    A hit on an entry adds the number of documents it serves to its
    ``hit_count``. When an insert pushes the size past ``max_size`` the entry
    with the lowest ``hit_count`` is evicted, the oldest ``created_at`` among
    equals going first. The entry just inserted is never the victim.
    Entries never expire otherwise and nothing is persisted.
    """

    def __init__(self, max_size: int = settings.DOCUMENT_CACHE_MAX_SIZE) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._entries: dict[RequestFingerprint, CacheEntry] = {}
        self._sequence = itertools.count()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries

    def get(self, fingerprint: RequestFingerprint) -> CacheEntry | None:
        """Return a copy of the entry for ``fingerprint`` or ``None`` on a miss."""
        entry = self._entries.get(fingerprint)
        if entry is None:
            logger.debug("Document cache miss", fingerprint=fingerprint[:12])
            return None
        entry.hit_count += len(entry.bundle)
        logger.info(
            "Document cache hit",
            fingerprint=fingerprint[:12],
            documents=len(entry.bundle),
            hit_count=entry.hit_count,
        )
        return replace(entry, bundle=_copy_bundle(entry.bundle))

    def set(
        self, fingerprint: RequestFingerprint, bundle: Sequence[DocumentResult]
    ) -> bool:
        """Store ``bundle``; returns False when it was refused.

        Bundles without a single successful document are never stored.
        """
        if count_successes(bundle) == 0:
            logger.info(
                "Refusing to cache bundle without successful documents",
                fingerprint=fingerprint[:12],
            )
            return False

        # Replacing an entry keeps the hits it has already earned.
        previous = self._entries.get(fingerprint)
        self._entries[fingerprint] = CacheEntry(
            fingerprint=fingerprint,
            bundle=_copy_bundle(bundle),
            created_at=time.time(),
            hit_count=previous.hit_count if previous else 0,
            sequence=next(self._sequence),
        )
        logger.debug(
            "Document bundle cached",
            fingerprint=fingerprint[:12],
            documents=len(bundle),
            size=len(self._entries),
        )
        while len(self._entries) > self.max_size:
            self._evict_one(keep=fingerprint)
        return True

    def _evict_one(self, keep: RequestFingerprint) -> None:
        candidates = [e for fp, e in self._entries.items() if fp != keep]
        victim = min(
            candidates, key=lambda e: (e.hit_count, e.created_at, e.sequence)
        )
        del self._entries[victim.fingerprint]
        logger.info(
            "Evicted document bundle from cache",
            fingerprint=victim.fingerprint[:12],
            hit_count=victim.hit_count,
            size=len(self._entries),
        )

    def stats(self) -> CacheStats:
        total_hits = sum(entry.hit_count for entry in self._entries.values())
        size = len(self._entries)
        return CacheStats(
            size=size,
            max_size=self.max_size,
            total_hits=total_hits,
            avg_hits_per_entry=total_hits / size if size else 0.0,
        )

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Document cache cleared")

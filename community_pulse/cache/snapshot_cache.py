"""In-process snapshot cache: source id -> latest EnrichedSnapshot.

Concurrency discipline:
- one asyncio.Lock per source id, taken by whoever mutates that source's
  cache entry or trackers (a fetch cycle or an inbound event)
- values are frozen and replaced in a single assignment, so readers never
  take a lock and never see a half-built record
- different sources never contend
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from community_pulse.cache.schemas import EnrichedSnapshot

logger = logging.getLogger(__name__)


class SnapshotCache:
    """Authoritative mapping from source id to latest snapshot.

    Created at process start, cleared only at process end.

    Args:
        order: Source ids in registry order; ``get_all()`` follows it.
    """

    def __init__(self, order: Iterable[str] = ()) -> None:
        self._order: list[str] = list(order)
        self._entries: dict[str, EnrichedSnapshot] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._last_update: datetime | None = None

    def lock(self, source_id: str) -> asyncio.Lock:
        """Exclusive-access lock for one source's cache entry and trackers."""
        lock = self._locks.get(source_id)
        if lock is None:
            lock = self._locks[source_id] = asyncio.Lock()
        return lock

    def upsert(self, source_id: str, snapshot: EnrichedSnapshot) -> EnrichedSnapshot:
        """Replace the value for ``source_id``.

        ``last_fetched`` never moves backwards for a source: a snapshot
        fetched before the cached data is refused and the cached value kept.

        Returns:
            The value actually stored.
        """
        if snapshot.source_id != source_id:
            raise ValueError(
                f"Snapshot for {snapshot.source_id!r} cannot be stored under {source_id!r}"
            )

        previous = self._entries.get(source_id)
        if (
            previous is not None
            and previous.raw is not None
            and snapshot.last_fetched < previous.last_fetched
        ):
            logger.debug("Refusing older snapshot for %s", source_id)
            return previous

        if source_id not in self._order:
            self._order.append(source_id)

        self._entries[source_id] = snapshot
        return snapshot

    def get(self, source_id: str) -> EnrichedSnapshot | None:
        return self._entries.get(source_id)

    def get_all(self) -> list[EnrichedSnapshot]:
        """Cached snapshots in registry order (sources never cached are skipped)."""
        return [self._entries[sid] for sid in self._order if sid in self._entries]

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def size(self) -> int:
        return len(self._entries)

    @property
    def last_update(self) -> datetime | None:
        """When the last full fetch cycle finished."""
        return self._last_update

    def mark_cycle_complete(self, at: datetime | None = None) -> datetime:
        self._last_update = at or datetime.now(timezone.utc)
        return self._last_update

    def clear(self) -> None:
        self._entries.clear()
        self._locks.clear()
        self._last_update = None

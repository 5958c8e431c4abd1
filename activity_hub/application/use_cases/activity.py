"""Use cases for aggregating recent activity across the platform."""

from __future__ import annotations

import bisect
import itertools
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Sequence

from activity_hub.domain.entities import ActivityItem, Category, PushEnvelope
from activity_hub.infrastructure.gateways import DomainGateway, fetch_all
from activity_hub.utils import ensure_app_timezone

from .normalization import normalize_event, normalize_record

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 50

FeedListener = Callable[[list[ActivityItem]], None]


@dataclass(order=True)
class _Entry:
    timestamp: datetime
    sequence: int
    item: ActivityItem = field(compare=False)


class ActivityAggregator:
    """Own the canonical, deduplicated, time-ordered and bounded activity list.

    Items are indexed by ``id``. An incoming item replaces the stored one only
    when its timestamp is greater than or equal to the stored timestamp, which
    keeps a late bulk response from overwriting a newer live update.
    """

    def __init__(self, max_items: int = DEFAULT_MAX_ITEMS) -> None:
        if max_items <= 0:
            raise ValueError("max_items must be a positive integer")
        self._max_items = max_items
        # Ascending by (timestamp, sequence); ``snapshot`` reverses it.
        self._order: list[_Entry] = []
        self._index: dict[str, _Entry] = {}
        self._sequence = itertools.count()
        self._listeners: list[FeedListener] = []

    @property
    def max_items(self) -> int:
        return self._max_items

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._index

    def hydrate(self, category_results: Mapping[Category | str, Sequence[Any]]) -> int:
        """Merge bulk-fetched records into the store.

        Returns the number of records that were accepted. Malformed records are
        dropped by the normalizer and duplicate ids inside a batch resolve by
        last-write-wins on timestamp.
        """

        accepted = 0
        for category, records in category_results.items():
            for record in records or ():
                item = normalize_record(category, record)
                if item is not None and self._upsert(item):
                    accepted += 1
        self._evict()
        self._notify()
        logger.debug("Hydrated %s activity items (%s retained)", accepted, len(self))
        return accepted

    def apply_live_event(
        self, envelope: PushEnvelope, *, received_at: datetime | None = None
    ) -> ActivityItem | None:
        """Normalize and store a push event, returning the stored item."""

        item = normalize_event(envelope, received_at=received_at)
        if item is None:
            return None
        return item if self.apply_item(item) else None

    def apply_item(self, item: ActivityItem) -> bool:
        """Upsert an already normalized item; ``False`` when it was stale."""

        if item.timestamp.tzinfo is None:
            item = replace(item, timestamp=ensure_app_timezone(item.timestamp))
        stored = self._upsert(item)
        if stored:
            self._evict()
            self._notify()
        return stored and item.id in self._index

    def snapshot(self) -> list[ActivityItem]:
        """Return the items newest first; ties list the later insertion first."""

        return [entry.item for entry in reversed(self._order)]

    def get(self, item_id: str) -> ActivityItem | None:
        entry = self._index.get(item_id)
        return entry.item if entry else None

    def subscribe(self, listener: FeedListener) -> Callable[[], None]:
        """Call ``listener`` with a fresh snapshot after every mutation."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear(self) -> None:
        """Drop every item, e.g. when the authenticated user changes."""

        self._order.clear()
        self._index.clear()
        self._notify()

    async def refresh(self, gateways: Iterable[DomainGateway], limit: int) -> int:
        """Fetch every gateway concurrently and hydrate with the successes."""

        results = await fetch_all(gateways, limit)
        return self.hydrate(results)

    def _upsert(self, item: ActivityItem) -> bool:
        existing = self._index.get(item.id)
        if existing is not None:
            if item.timestamp < existing.timestamp:
                return False
            position = bisect.bisect_left(self._order, existing)
            del self._order[position]

        entry = _Entry(item.timestamp, next(self._sequence), item)
        if not self._order or entry > self._order[-1]:
            self._order.append(entry)
        else:
            bisect.insort(self._order, entry)
        self._index[item.id] = entry
        return True

    def _evict(self) -> None:
        overflow = len(self._order) - self._max_items
        if overflow <= 0:
            return
        evicted, self._order = self._order[:overflow], self._order[overflow:]
        for entry in evicted:
            self._index.pop(entry.item.id, None)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(list(snapshot))
            except Exception:
                logger.exception("Activity feed listener %r failed", listener)


__all__ = ["ActivityAggregator", "DEFAULT_MAX_ITEMS", "FeedListener"]

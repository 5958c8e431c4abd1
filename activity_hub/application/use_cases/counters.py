"""Per-category unread counters backed by persisted read marks."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable

import anyio

from activity_hub.domain.entities import LIVE_ACTIVITY_COUNTER, ActivityItem, Category
from activity_hub.infrastructure.gateways import DomainGateway, count_all
from activity_hub.infrastructure.repositories import ReadState, ReadStateStore
from activity_hub.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

CounterListener = Callable[[dict[str, int]], None]

COUNTER_KEYS: tuple[str, ...] = tuple(category.value for category in Category) + (
    LIVE_ACTIVITY_COUNTER,
)


def counter_key(category: Category | str) -> str:
    """Return the counter key for ``category`` (``liveActivity`` included)."""

    if category == LIVE_ACTIVITY_COUNTER:
        return LIVE_ACTIVITY_COUNTER
    return Category.parse(category).value


def _empty_counters() -> dict[str, int]:
    return {key: 0 for key in COUNTER_KEYS}


class NotificationCounterStore:
    """Answer "how many unread items exist per category".

    Counters only grow through :meth:`apply_live_event` and only drop to zero
    through :meth:`mark_as_read`; :meth:`refresh_from_server` overwrites them
    with the server-side view to recover from missed push events.
    """

    def __init__(
        self,
        repository: ReadStateStore,
        gateways: Iterable[DomainGateway] = (),
        *,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._repository = repository
        self._gateways = list(gateways)
        self._clock = clock
        self._counters = _empty_counters()
        self._read_state: ReadState = {}
        self._latest_counted: dict[str, datetime] = {}
        self._viewing: set[str] = set()
        self._identity: tuple[str, str] | None = None
        self._generation = 0
        self._listeners: list[CounterListener] = []

    def load(self, tenant_id: str, user_id: str) -> None:
        """Re-initialize the store for a freshly authenticated user."""

        self._generation += 1
        self._identity = (tenant_id, user_id)
        self._counters = _empty_counters()
        self._latest_counted = {}
        self._viewing = set()
        try:
            self._read_state = dict(self._repository.load(tenant_id, user_id))
        except Exception:
            logger.exception("Failed to load read state for %s.%s", tenant_id, user_id)
            self._read_state = {}
        self._notify()

    def reset(self) -> None:
        """Forget the current user, e.g. on logout."""

        self._generation += 1
        self._identity = None
        self._counters = _empty_counters()
        self._read_state = {}
        self._latest_counted = {}
        self._viewing = set()
        self._notify()

    def set_gateways(self, gateways: Iterable[DomainGateway]) -> None:
        self._gateways = list(gateways)

    def set_viewing(self, category: Category | str, viewing: bool) -> None:
        """Record whether the user is currently looking at ``category``."""

        key = counter_key(category)
        if viewing:
            self._viewing.add(key)
        else:
            self._viewing.discard(key)

    def is_viewing(self, category: Category | str) -> bool:
        return counter_key(category) in self._viewing

    def apply_live_event(
        self, item: ActivityItem, *, being_viewed: bool | None = None
    ) -> bool:
        """Count a live item; returns whether its category counter grew.

        ``being_viewed`` overrides the state recorded by :meth:`set_viewing`.
        """

        if not self.is_viewing(LIVE_ACTIVITY_COUNTER):
            self._counters[LIVE_ACTIVITY_COUNTER] += 1
            self._track_counted(LIVE_ACTIVITY_COUNTER, item.timestamp)

        key = item.category.value
        viewed = self.is_viewing(key) if being_viewed is None else being_viewed
        last_read = self._read_state.get(key)
        incremented = not viewed and (last_read is None or last_read < item.timestamp)
        if incremented:
            self._counters[key] += 1
            self._track_counted(key, item.timestamp)
        self._notify()
        return incremented

    def mark_as_read(self, category: Category | str) -> datetime:
        """Zero the counter of ``category`` and persist its read mark."""

        read_at = self._mark(category)
        self._persist(self._identity, self.read_state())
        self._notify()
        return read_at

    async def mark_as_read_async(self, category: Category | str) -> datetime:
        """Same as :meth:`mark_as_read`, with the repository write in a worker thread."""

        read_at = self._mark(category)
        await anyio.to_thread.run_sync(self._persist, self._identity, self.read_state())
        self._notify()
        return read_at

    def _mark(self, category: Category | str) -> datetime:
        key = counter_key(category)
        read_at = self._clock()
        latest = self._latest_counted.pop(key, None)
        if latest is not None and latest > read_at:
            read_at = latest
        self._counters[key] = 0
        self._read_state[key] = read_at
        return read_at

    async def refresh_from_server(self) -> dict[str, int]:
        """Overwrite counters with the unread counts reported by the gateways.

        Categories whose query fails keep their previous value.
        """

        generation = self._generation
        counts = await count_all(self._gateways)
        if generation != self._generation:
            logger.debug("Discarding counter refresh started for a previous session")
            return self.counters()
        for category, count in counts.items():
            self._counters[category.value] = max(0, int(count))
        self._notify()
        return self.counters()

    def counters(self) -> dict[str, int]:
        return dict(self._counters)

    def read_state(self) -> ReadState:
        return dict(self._read_state)

    def subscribe(self, listener: CounterListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _track_counted(self, key: str, timestamp: datetime) -> None:
        current = self._latest_counted.get(key)
        if current is None or timestamp > current:
            self._latest_counted[key] = timestamp

    def _persist(self, identity: tuple[str, str] | None, state: ReadState) -> None:
        if identity is None:
            logger.debug("No authenticated user; read state kept in memory only")
            return
        tenant_id, user_id = identity
        try:
            self._repository.save(tenant_id, user_id, state)
        except Exception:
            logger.exception("Failed to persist read state for %s.%s", tenant_id, user_id)

    def _notify(self) -> None:
        snapshot = self.counters()
        for listener in list(self._listeners):
            try:
                listener(dict(snapshot))
            except Exception:
                logger.exception("Counter listener %r failed", listener)


__all__ = [
    "COUNTER_KEYS",
    "CounterListener",
    "NotificationCounterStore",
    "counter_key",
]

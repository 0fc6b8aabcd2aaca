"""
questlog.sync.poller — Polling Subscriptions
=============================================

Keeps in-memory views of collections "live" without a push channel.
``subscribe()`` delivers the current (filtered) snapshot synchronously,
then re-reads and re-delivers the full snapshot on a fixed interval,
unconditionally — consumers detect no-ops themselves.

Each subscription owns one daemon thread that sleeps on a
:class:`threading.Event`, so ``unsubscribe()`` wakes it immediately.
Ticks of one subscription never overlap.  With
``skip_overlapping_ticks`` (the default) a tick whose due time passed
while the previous one was still running is skipped; without it, missed
ticks run back-to-back.

A failing tick (read, filter, or callback) is logged and counted; the
poller keeps going.  The first delivery runs in the caller's context, so
its errors reach the caller and no poller is started.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from typing import Any

from questlog.constants import DEFAULT_POLL_INTERVAL_MS, MEMBERS, TASKS
from questlog.entities import Member, Task, record_assignees
from questlog.repositories.tasks import TaskFilter
from questlog.store.collections import CollectionStore

logger = logging.getLogger(__name__)

Snapshot = list[dict]
RecordFilter = Callable[[dict], bool]


def match_fields(criteria: Mapping[str, Any]) -> RecordFilter:
    """Predicate from ``{"recordKey": value}``.

    A list-valued record field matches when it contains *value*
    (``{"assignedTo": "u1"}``); any other field must be equal.  On the
    ``tasks`` collection, :meth:`SyncFacade.subscribe` defaults a missing
    ``assignedTo`` to ``[ownerId]`` first, as :class:`TaskFilter` does.
    """
    items = dict(criteria)

    def _match(record: dict) -> bool:
        for key, expected in items.items():
            actual = record.get(key)
            if isinstance(actual, list):
                if expected not in actual:
                    return False
            elif actual != expected:
                return False
        return True

    return _match


def _task_criteria(match: RecordFilter) -> RecordFilter:
    """Match task records with ``assignedTo`` defaulted to ``[ownerId]``."""

    def _match(record: dict) -> bool:
        return match({**record, "assignedTo": record_assignees(record)})

    return _match


def _as_predicate(flt: RecordFilter | Mapping[str, Any] | None) -> RecordFilter | None:
    if flt is None or callable(flt):
        return flt
    if isinstance(flt, Mapping):
        return match_fields(flt)
    raise TypeError(f"Unsupported snapshot filter: {flt!r}")


# ---------------------------------------------------------------------------
# Subscription: one poller thread per handle
# ---------------------------------------------------------------------------
class Subscription:
    """Handle returned by :meth:`SyncFacade.subscribe`.

    Calling the handle (or :meth:`unsubscribe`) stops the poller.  Safe to
    call any number of times, from any thread, including from inside the
    snapshot callback.
    """

    def __init__(
        self,
        name: str,
        read: Callable[[], Snapshot],
        on_snapshot: Callable[[Any], None],
        *,
        interval: float,
        skip_overlapping: bool = True,
        on_close: Callable[[Subscription], None] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("Polling interval must be positive")
        self.name = name
        self.interval = interval
        self.skip_overlapping = skip_overlapping
        self._read = read
        self._on_snapshot = on_snapshot
        self._on_close = on_close

        self._stop = threading.Event()
        self._close_lock = threading.Lock()
        self._closed = False
        self._tick_lock = threading.Lock()
        self._ticking_thread: int | None = None
        self._thread: threading.Thread | None = None

        self.deliveries = 0
        self.failed_ticks = 0
        self.skipped_ticks = 0

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def start(self) -> Subscription:
        """Deliver the first snapshot synchronously, then start polling."""
        self._on_snapshot(self._read())
        self.deliveries += 1
        if self._stop.is_set():
            return self

        thread = threading.Thread(
            target=self._run, daemon=True, name=f"questlog-poll-{self.name}"
        )
        self._thread = thread
        thread.start()
        logger.debug("Subscription on '%s' started (every %.3fs)", self.name, self.interval)
        return self

    @property
    def active(self) -> bool:
        return not self._stop.is_set()

    def unsubscribe(self) -> None:
        """Stop polling.  No delivery happens after this returns."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._stop.set()

        current = threading.get_ident()
        if self._thread is not None and self._thread.ident != current:
            self._thread.join()
        # Wait out a tick running on another thread (manual tick() callers).
        if self._ticking_thread is not None and self._ticking_thread != current:
            with self._tick_lock:
                pass

        if self._on_close is not None:
            self._on_close(self)
        logger.debug(
            "Subscription on '%s' stopped after %d deliveries", self.name, self.deliveries
        )

    __call__ = unsubscribe

    # -------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------
    def tick(self) -> bool:
        """Run one read → filter → deliver cycle.

        Returns True when a snapshot was delivered.  Never raises.
        """
        if not self._tick_lock.acquire(blocking=False):
            self.skipped_ticks += 1
            logger.debug("Tick on '%s' skipped, previous tick still running", self.name)
            return False
        self._ticking_thread = threading.get_ident()
        try:
            if self._stop.is_set():
                return False
            snapshot = self._read()
            if self._stop.is_set():
                return False
            self._on_snapshot(snapshot)
            self.deliveries += 1
            return True
        except Exception:
            self.failed_ticks += 1
            logger.exception("Polling tick on '%s' failed, no snapshot this cycle", self.name)
            return False
        finally:
            self._ticking_thread = None
            self._tick_lock.release()

    def _run(self) -> None:
        next_due = time.monotonic() + self.interval
        while not self._stop.wait(max(0.0, next_due - time.monotonic())):
            self.tick()
            next_due += self.interval
            now = time.monotonic()
            if self.skip_overlapping and now >= next_due:
                missed = int((now - next_due) // self.interval) + 1
                self.skipped_ticks += missed
                next_due += missed * self.interval
                logger.debug(
                    "Tick on '%s' overran, skipping %d tick(s)", self.name, missed
                )


# ---------------------------------------------------------------------------
# SyncFacade
# ---------------------------------------------------------------------------
class SyncFacade:
    """Subscribe to collections of a :class:`CollectionStore`.

    Usage::

        sync = SyncFacade(store, poll_interval_ms=2000)
        sub = sync.subscribe("tasks", render, {"assignedTo": "u1"})
        ...
        sub.unsubscribe()
        sync.close()          # on application shutdown
    """

    def __init__(
        self,
        store: CollectionStore,
        *,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        skip_overlapping_ticks: bool = True,
    ) -> None:
        if poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")
        self._store = store
        self.poll_interval_ms = poll_interval_ms
        self.skip_overlapping_ticks = skip_overlapping_ticks
        self._subscriptions: set[Subscription] = set()
        self._lock = threading.Lock()

    def subscribe(
        self,
        collection: str,
        on_snapshot: Callable[[Snapshot], None],
        filter: RecordFilter | Mapping[str, Any] | None = None,
    ) -> Subscription:
        """Deliver *collection* now and then every ``poll_interval_ms``."""
        predicate = _as_predicate(filter)
        if collection == TASKS and isinstance(filter, Mapping):
            predicate = _task_criteria(predicate)

        def _read() -> Snapshot:
            records = self._store.get(collection)
            if predicate is None:
                return records
            return [r for r in records if predicate(r)]

        return self._start(collection, _read, on_snapshot)

    def subscribe_tasks(
        self,
        on_snapshot: Callable[[list[Task]], None],
        task_filter: TaskFilter | None = None,
    ) -> Subscription:
        """Like :meth:`subscribe` on ``tasks``, delivering :class:`Task` objects."""

        def _read() -> list[Task]:
            records = self._store.get(TASKS)
            if task_filter is not None:
                records = [r for r in records if task_filter(r)]
            return [Task.from_record(r) for r in records]

        return self._start(TASKS, _read, on_snapshot)

    def subscribe_members(
        self, on_snapshot: Callable[[list[Member]], None]
    ) -> Subscription:
        """Like :meth:`subscribe` on ``members``, sorted by name."""

        def _read() -> list[Member]:
            members = [Member.from_record(r) for r in self._store.get(MEMBERS)]
            return sorted(members, key=lambda m: m.name.lower())

        return self._start(MEMBERS, _read, on_snapshot)

    def _start(
        self, name: str, read: Callable[[], Any], on_snapshot: Callable[[Any], None]
    ) -> Subscription:
        sub = Subscription(
            name,
            read,
            on_snapshot,
            interval=self.poll_interval_ms / 1000,
            skip_overlapping=self.skip_overlapping_ticks,
            on_close=self._forget,
        )
        sub.start()
        with self._lock:
            if sub.active:
                self._subscriptions.add(sub)
        return sub

    def _forget(self, sub: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(sub)

    @property
    def active_subscriptions(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def close(self) -> None:
        """Stop every live subscription."""
        with self._lock:
            subs = list(self._subscriptions)
        for sub in subs:
            sub.unsubscribe()
        if subs:
            logger.info("Sync façade closed %d subscription(s)", len(subs))

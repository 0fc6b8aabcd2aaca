"""
tests/test_sync.py — Polling Subscription Tests
================================================

Uses short intervals (tens of milliseconds) and Event-based waits so
the suite stays fast without sleeping on fixed delays.
"""

from __future__ import annotations

import threading
import time

import pytest

from questlog.repositories.tasks import TaskFilter
from questlog.sync.poller import Subscription, SyncFacade, match_fields

WAIT = 2.0  # seconds; generous upper bound for background deliveries


class Recorder:
    """Snapshot callback that records every delivery."""

    def __init__(self, want: int = 1) -> None:
        self.snapshots: list = []
        self.want = want
        self.done = threading.Event()

    def __call__(self, snapshot) -> None:
        self.snapshots.append(snapshot)
        if len(self.snapshots) >= self.want:
            self.done.set()


@pytest.fixture
def sync(store):
    facade = SyncFacade(store, poll_interval_ms=20)
    yield facade
    facade.close()


# ---------------------------------------------------------------------------
# match_fields
# ---------------------------------------------------------------------------
class TestMatchFields:
    def test_list_field_matches_membership(self):
        assert match_fields({"assignedTo": "u1"})({"assignedTo": ["u0", "u1"]})
        assert not match_fields({"assignedTo": "u1"})({"assignedTo": ["u2"]})

    def test_scalar_field_matches_equality(self):
        assert match_fields({"status": "todo"})({"status": "todo"})
        assert not match_fields({"status": "todo"})({})


# ---------------------------------------------------------------------------
# SyncFacade
# ---------------------------------------------------------------------------
class TestSubscribe:
    def test_first_delivery_is_synchronous_and_filtered(self, sync, tasks):
        mine = tasks.create("Mine", "u1", "u1")
        tasks.create("Theirs", "u2", "u2")
        rec = Recorder()
        sub = sync.subscribe("tasks", rec, {"assignedTo": "u1"})
        assert [r["id"] for r in rec.snapshots[0]] == [mine]
        sub.unsubscribe()

    def test_later_writes_show_up_on_next_tick(self, sync, tasks):
        first = tasks.create("First", "u1", "u1")
        seen = threading.Event()
        ids: list[list[str]] = []

        def on_snapshot(snapshot):
            ids.append([r["id"] for r in snapshot])
            if len(snapshot) == 2:
                seen.set()

        sub = sync.subscribe("tasks", on_snapshot, {"assignedTo": "u1"})
        second = tasks.create("Second", "m9", "u1", assigned_to=["u1"])
        assert seen.wait(WAIT)
        sub.unsubscribe()
        assert ids[0] == [first]
        assert sorted([first, second]) == sorted(ids[-1])

    def test_dict_filter_falls_back_to_owner_for_legacy_tasks(self, sync, store):
        store.save("tasks", [{"id": "t1", "ownerId": "u1"}, {"id": "t2", "ownerId": "u2"}])
        by_dict, by_filter = Recorder(), Recorder()
        sync.subscribe("tasks", by_dict, {"assignedTo": "u1"}).unsubscribe()
        sync.subscribe_tasks(by_filter, TaskFilter(assigned_to="u1")).unsubscribe()
        assert [r["id"] for r in by_dict.snapshots[0]] == ["t1"]
        assert [t.id for t in by_filter.snapshots[0]] == ["t1"]

    def test_dict_filter_on_other_collections_is_literal(self, sync, store):
        store.save("members", [{"id": "m1", "ownerId": "u1"}])
        rec = Recorder()
        sync.subscribe("members", rec, {"assignedTo": "u1"}).unsubscribe()
        assert rec.snapshots[0] == []

    def test_unchanged_data_is_redelivered(self, sync):
        rec = Recorder(want=3)
        sub = sync.subscribe("tasks", rec)
        assert rec.done.wait(WAIT)
        sub.unsubscribe()
        assert all(s == [] for s in rec.snapshots)

    def test_subscribe_tasks_delivers_entities(self, sync, tasks):
        task_id = tasks.create("Typed", "u1", "u1")
        rec = Recorder()
        sub = sync.subscribe_tasks(rec, TaskFilter(assigned_to="u1"))
        sub.unsubscribe()
        assert [t.id for t in rec.snapshots[0]] == [task_id]

    def test_subscribe_members_sorted_by_name(self, sync, members):
        members.create("zoe", "u1")
        members.create("Ada", "u2")
        rec = Recorder()
        sync.subscribe_members(rec).unsubscribe()
        assert [m.name for m in rec.snapshots[0]] == ["Ada", "zoe"]

    def test_bad_filter_type(self, sync):
        with pytest.raises(TypeError):
            sync.subscribe("tasks", lambda s: None, 42)

    def test_interval_must_be_positive(self, store):
        with pytest.raises(ValueError):
            SyncFacade(store, poll_interval_ms=0)


# ---------------------------------------------------------------------------
# Unsubscribe
# ---------------------------------------------------------------------------
class TestUnsubscribe:
    def test_idempotent_and_stops_delivery(self, sync):
        rec = Recorder(want=2)
        sub = sync.subscribe("tasks", rec)
        assert rec.done.wait(WAIT)
        sub.unsubscribe()
        sub.unsubscribe()
        sub()
        count = len(rec.snapshots)
        threading.Event().wait(0.1)
        assert len(rec.snapshots) == count
        assert not sub.active
        assert sync.active_subscriptions == 0

    def test_unsubscribe_from_inside_callback(self, sync):
        holder: list[Subscription] = []
        calls = threading.Event()

        def on_snapshot(snapshot):
            if holder:
                holder[0].unsubscribe()
                calls.set()

        holder.append(sync.subscribe("tasks", on_snapshot))
        assert calls.wait(WAIT)
        assert not holder[0].active

    def test_unsubscribe_during_first_delivery_starts_no_thread(self, store):
        sub = Subscription("tasks", lambda: [], lambda s: None, interval=0.02)
        sub._on_snapshot = lambda s: sub.unsubscribe()
        sub.start()
        assert sub._thread is None
        assert not sub.active

    def test_close_stops_everything(self, store):
        facade = SyncFacade(store, poll_interval_ms=20)
        facade.subscribe("tasks", lambda s: None)
        facade.subscribe("members", lambda s: None)
        assert facade.active_subscriptions == 2
        facade.close()
        assert facade.active_subscriptions == 0


# ---------------------------------------------------------------------------
# Tick behaviour
# ---------------------------------------------------------------------------
class TestTicks:
    def test_failing_tick_does_not_stop_poller(self):
        calls = {"n": 0}

        def read():
            calls["n"] += 1
            if calls["n"] == 2:
                raise OSError("disk hiccup")
            return []

        rec = Recorder(want=2)
        sub = Subscription("tasks", read, rec, interval=0.02).start()
        assert rec.done.wait(WAIT)
        sub.unsubscribe()
        assert sub.failed_ticks >= 1

    def test_first_delivery_errors_reach_caller(self, sync):
        def boom(snapshot):
            raise RuntimeError("render failed")

        with pytest.raises(RuntimeError):
            sync.subscribe("tasks", boom)
        assert sync.active_subscriptions == 0

    def test_overlapping_tick_is_skipped(self):
        entered = threading.Event()
        release = threading.Event()

        def slow(snapshot):
            entered.set()
            release.wait(WAIT)

        sub = Subscription("tasks", lambda: [], slow, interval=10)
        worker = threading.Thread(target=sub.tick)
        worker.start()
        assert entered.wait(WAIT)
        assert sub.tick() is False
        release.set()
        worker.join(WAIT)
        assert sub.skipped_ticks == 1
        assert sub.deliveries == 1


# ---------------------------------------------------------------------------
# Overrun policy of the poll loop
# ---------------------------------------------------------------------------
class SlowSecondDelivery:
    """Callback whose second call (first background tick) overruns."""

    def __init__(self, stall: float, want: int) -> None:
        self.stall = stall
        self.want = want
        self.times: list[float] = []
        self.done = threading.Event()

    def __call__(self, snapshot) -> None:
        self.times.append(time.monotonic())
        if len(self.times) == 2:
            time.sleep(self.stall)
            self.times[-1] = time.monotonic()
        if len(self.times) >= self.want:
            self.done.set()


class TestOverrunPolicy:
    def test_skip_mode_drops_missed_ticks(self):
        cb = SlowSecondDelivery(stall=0.5, want=4)
        sub = Subscription("tasks", lambda: [], cb, interval=0.1, skip_overlapping=True)
        sub.start()
        assert cb.done.wait(WAIT + 1)
        sub.unsubscribe()
        assert sub.skipped_ticks >= 3
        # after the stall the schedule resumes at the normal spacing
        assert cb.times[2] - cb.times[1] >= 0.02

    def test_catch_up_mode_runs_missed_ticks_back_to_back(self):
        cb = SlowSecondDelivery(stall=0.5, want=5)
        sub = Subscription("tasks", lambda: [], cb, interval=0.1, skip_overlapping=False)
        sub.start()
        assert cb.done.wait(WAIT + 1)
        sub.unsubscribe()
        assert sub.skipped_ticks == 0
        # three missed ticks delivered well inside one interval
        assert cb.times[4] - cb.times[1] < 0.1

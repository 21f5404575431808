"""
Unit tests for the stopwatch and saving timer sessions.
"""

import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from timetrack.core.database import SQLiteDatabase
from timetrack.store.record_store import RecordStore
from timetrack.timer import Stopwatch, save_timer_entry
from timetrack.utils.errors import ValidationError


class FakeHandle:
    def __init__(self, callback):
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """Collects call_later requests; fire() runs the newest pending one."""

    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback):
        handle = FakeHandle(callback)
        self.handles.append(handle)
        return handle

    def fire(self, times=1):
        for _ in range(times):
            handle = self.handles[-1]
            if not handle.cancelled:
                handle.callback()

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled]


@pytest.fixture
def loop():
    return FakeLoop()


class TestStopwatch:

    def test_counts_ticks(self, loop):
        ticks = []
        watch = Stopwatch(on_tick=ticks.append, loop=loop)

        watch.start()
        loop.fire(3)

        assert watch.elapsed == 3
        assert ticks == [1, 2, 3]
        assert watch.is_running

    def test_start_twice_schedules_once(self, loop):
        watch = Stopwatch(loop=loop)

        watch.start()
        watch.start()

        assert len(loop.handles) == 1

    def test_pause_cancels_pending_tick(self, loop):
        watch = Stopwatch(loop=loop)
        watch.start()
        loop.fire(2)
        stale = loop.handles[-1]

        watch.pause()
        stale.callback()

        assert stale.cancelled
        assert watch.elapsed == 2
        assert not watch.is_running

    def test_resume_keeps_elapsed(self, loop):
        watch = Stopwatch(loop=loop)
        watch.start()
        loop.fire(5)
        watch.pause()

        watch.start()
        loop.fire(1)

        assert watch.elapsed == 6

    def test_reset(self, loop):
        watch = Stopwatch(loop=loop)
        watch.start()
        loop.fire(61)

        assert watch.display == "00:01:01"

        watch.reset()

        assert watch.elapsed == 0
        assert watch.display == "00:00:00"
        assert loop.pending == []

    def test_failing_tick_callback_keeps_counting(self, loop):
        watch = Stopwatch(on_tick=MagicMock(side_effect=RuntimeError("render")), loop=loop)
        watch.start()

        loop.fire(2)

        assert watch.elapsed == 2

    def test_start_outside_loop_requires_running_loop(self):
        with pytest.raises(RuntimeError):
            Stopwatch().start()

    @pytest.mark.asyncio
    async def test_runs_on_running_loop(self):
        ticks = []
        watch = Stopwatch(on_tick=ticks.append, interval=0.01)

        watch.start()
        await asyncio.sleep(0.05)
        watch.pause()
        counted = watch.elapsed
        await asyncio.sleep(0.03)

        assert counted >= 1
        assert watch.elapsed == counted
        assert ticks[-1] == counted


class TestSaveTimerEntry:

    @pytest.fixture
    def store(self, tmp_path):
        return RecordStore(SQLiteDatabase(tmp_path / "timer.db", create=True), retry_delay=0)

    def test_saves_entry_and_adds_time(self, store):
        task = store.create_task("u1", {"title": "Report", "time_spent": 600})
        now = datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc)

        entry = save_timer_entry(store, "u1", 1800, "Report", task.id, now=now)

        assert entry.duration == 1800
        assert entry.task_id == task.id
        assert entry.ended_at == now
        assert entry.started_at == now - timedelta(seconds=1800)
        assert store.get_task("u1", task.id).time_spent == 2400

    def test_saves_without_task(self, store):
        entry = save_timer_entry(store, "u1", 90, "Ad hoc")

        assert entry.task_id is None
        assert [e.task_name for e in store.list_time_entries("u1")] == ["Ad hoc"]

    @pytest.mark.parametrize("elapsed,task_name,field", [
        (0, "Report", "elapsed"),
        (-5, "Report", "elapsed"),
        (60, "   ", "task_name"),
        (60, None, "task_name"),
    ])
    def test_rejects_invalid_sessions(self, elapsed, task_name, field):
        store = MagicMock()

        with pytest.raises(ValidationError) as exc_info:
            save_timer_entry(store, "u1", elapsed, task_name)

        assert exc_info.value.field == field
        store.create_time_entry.assert_not_called()

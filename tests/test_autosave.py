"""
Tests for the debounced saver.
"""

import threading
from unittest.mock import Mock

from autosave import DebouncedSaver


class TestDebouncedSaver:

    def test_burst_of_changes_saves_once(self, timers):
        save = Mock()
        saver = DebouncedSaver(save, delay=1.0, timer_factory=timers)

        saver.schedule()
        saver.schedule()
        saver.schedule()

        assert len(timers.created) == 3
        assert [t.cancelled for t in timers.created] == [True, True, False]
        assert all(t.delay == 1.0 for t in timers.created)

        for t in timers.created:
            t.fire()
        save.assert_called_once()
        assert not saver.pending

    def test_late_fire_of_replaced_timer_is_ignored(self, timers):
        save = Mock()
        saver = DebouncedSaver(save, timer_factory=timers)

        saver.schedule()
        stale = timers.created[0]
        saver.schedule()
        # a replaced timer that fires anyway must not save
        stale.fn()

        save.assert_not_called()
        assert saver.pending

    def test_cancel_drops_pending_save(self, timers):
        save = Mock()
        saver = DebouncedSaver(save, timer_factory=timers)

        saver.schedule()
        saver.cancel()
        timers.created[0].fn()

        save.assert_not_called()
        assert timers.created[0].cancelled
        assert not saver.pending

    def test_real_timer_fires(self):
        done = threading.Event()
        saver = DebouncedSaver(done.set, delay=0.01)

        saver.schedule()

        assert done.wait(2)

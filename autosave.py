"""Debounced saving: push local changes once they have been quiet for a while."""
import logging
import threading
from typing import Callable, Optional

from config import AUTOSAVE_DELAY

logger = logging.getLogger(__name__)


class DebouncedSaver:
    """
    Each schedule() call replaces the pending save with a new one `delay`
    seconds out; cancel() drops it.

    timer_factory has the threading.Timer signature (delay, fn) and must
    return an object with start() and cancel().
    """

    def __init__(self, save: Callable[[], None], delay: float = AUTOSAVE_DELAY, timer_factory=threading.Timer):
        self.save = save
        self.delay = delay
        self.timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[object] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def schedule(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = self.timer_factory(self.delay, lambda: self._fire(generation))
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self):
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self, generation: int):
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
        logger.debug("Autosave triggered")
        self.save()

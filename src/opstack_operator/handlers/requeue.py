""" In-process bookkeeping for requeues and per-resource serialisation.
"""

import logging
import os
import threading
import time

logger = logging.getLogger(__name__)


def get_requeue_tick():
    """ Get the requeue timer interval in seconds from environment.
    """
    return float(os.getenv("REQUEUE_TICK_SECONDS", "30"))


class RequeueTracker:
    """ When each resource next wants reconciling.

    Keys are (kind, namespace, name). The kopf timer polls is_due() on
    every tick, so the effective delay is rounded up to the tick interval.
    """

    def __init__(self, clock=time.monotonic):
        self.clock = clock
        self._due = {}
        self._lock = threading.Lock()

    def schedule(self, key, requeue_after):
        """ Record the next reconcile time for a key.

        Args:
            key: (kind, namespace, name)
            requeue_after: Seconds from now, or None to stop requeueing
        """
        with self._lock:
            if requeue_after is None:
                self._due.pop(key, None)
            else:
                self._due[key] = self.clock() + requeue_after

    def is_due(self, key):
        with self._lock:
            deadline = self._due.get(key)
        return deadline is not None and self.clock() >= deadline

    def forget(self, key):
        with self._lock:
            self._due.pop(key, None)

    def pending(self):
        with self._lock:
            return dict(self._due)


class ReconcileGate:
    """Per-key locks so one resource is never reconciled twice at once."""

    def __init__(self):
        self._locks = {}
        self._lock = threading.Lock()

    def lock_for(self, key):
        with self._lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def discard(self, key):
        with self._lock:
            self._locks.pop(key, None)

import threading

import pytest

from opstack_operator.controllers.base import ReconcileResult
from opstack_operator.handlers import reconcile_handler
from opstack_operator.handlers.reconcile_handler import run_reconcile
from opstack_operator.handlers.requeue import ReconcileGate, RequeueTracker

BODY = {"metadata": {"name": "batcher", "namespace": "default"}}
KEY = ("OpBatcher", "default", "batcher")


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class StubController:
    kind = "OpBatcher"

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    def reconcile(self, name, namespace):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def events(monkeypatch):
    """Capture kopf events instead of posting them."""
    recorded = []
    for level in ("info", "warn", "exception"):
        monkeypatch.setattr(
            reconcile_handler.kopf,
            level,
            lambda body, reason, message, level=level: recorded.append((level, reason, message)),
        )
    return recorded


def test_tracker_due_after_interval():
    clock = Clock()
    tracker = RequeueTracker(clock=clock)

    tracker.schedule(KEY, 60)
    assert not tracker.is_due(KEY)

    clock.now = 60
    assert tracker.is_due(KEY)


def test_tracker_none_stops_requeue():
    tracker = RequeueTracker(clock=Clock())
    tracker.schedule(KEY, 0)
    tracker.schedule(KEY, None)

    assert not tracker.is_due(KEY)
    assert tracker.pending() == {}


def test_gate_hands_out_one_lock_per_key():
    gate = ReconcileGate()
    assert gate.lock_for(KEY) is gate.lock_for(KEY)
    assert gate.lock_for(KEY) is not gate.lock_for(("OpNode", "default", "seq"))


def test_run_reconcile_schedules_requeue(events):
    tracker = RequeueTracker(clock=Clock())
    controller = StubController(ReconcileResult(requeue_after=300, phase="Running"))

    run_reconcile(controller, tracker, ReconcileGate(), BODY, "batcher", "default")

    assert tracker.pending() == {KEY: 300}
    assert events == [("info", "Running", "OpBatcher batcher is Running")]


def test_pending_phase_emits_warning(events):
    controller = StubController(
        ReconcileResult(
            requeue_after=60,
            phase="Pending",
            previous_phase="Running",
            message="OptimismNetwork default/testnet is not ready",
        )
    )

    run_reconcile(controller, RequeueTracker(), ReconcileGate(), BODY, "batcher", "default")

    assert events[0][0] == "warn"
    assert "not ready" in events[0][2]


def test_unchanged_phase_is_quiet(events):
    controller = StubController(
        ReconcileResult(requeue_after=300, phase="Running", previous_phase="Running")
    )

    run_reconcile(controller, RequeueTracker(), ReconcileGate(), BODY, "batcher", "default")

    assert events == []


def test_unexpected_error_is_reported_and_requeued(events):
    clock = Clock()
    tracker = RequeueTracker(clock=clock)
    controller = StubController(error=RuntimeError("api server went away"))

    result = run_reconcile(controller, tracker, ReconcileGate(), BODY, "batcher", "default")

    assert result is None
    assert events == [("exception", "ReconcileError", "api server went away")]
    assert tracker.pending() == {KEY: 60}


def test_busy_key_is_deferred(events):
    tracker = RequeueTracker(clock=Clock())
    gate = ReconcileGate()
    controller = StubController(ReconcileResult(requeue_after=300, phase="Running"))

    lock = gate.lock_for(KEY)
    lock.acquire()
    try:
        run_reconcile(controller, tracker, gate, BODY, "batcher", "default")
    finally:
        lock.release()

    assert controller.calls == 0
    assert tracker.is_due(KEY)


def test_deleted_resource_is_forgotten(events):
    tracker = RequeueTracker()
    tracker.schedule(KEY, 300)
    controller = StubController(ReconcileResult(deleted=True))

    run_reconcile(controller, tracker, ReconcileGate(), BODY, "batcher", "default")

    assert tracker.pending() == {}
    assert events[0][1] == "Deleted"


def test_concurrent_reconciles_are_serialised(events):
    gate = ReconcileGate()
    tracker = RequeueTracker()
    entered = threading.Event()
    release = threading.Event()

    class SlowController(StubController):
        def reconcile(self, name, namespace):
            self.calls += 1
            entered.set()
            release.wait(timeout=5)
            return ReconcileResult(requeue_after=300, phase="Running")

    controller = SlowController()
    worker = threading.Thread(
        target=run_reconcile, args=(controller, tracker, gate, BODY, "batcher", "default")
    )
    worker.start()
    entered.wait(timeout=5)

    run_reconcile(controller, tracker, gate, BODY, "batcher", "default")
    release.set()
    worker.join(timeout=5)

    assert controller.calls == 1

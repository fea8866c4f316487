from opstack_operator.utils import conditions
from opstack_operator.utils.conditions import (
    PHASE_ERROR,
    PHASE_PENDING,
    PHASE_READY,
    derive_phase,
    get_condition,
    remove_condition,
    set_condition,
)


def test_set_condition_adds_once_per_type():
    """Test a condition type appears at most once."""
    entries = []
    set_condition(entries, "L1Connected", True, "RPCEndpointReachable", "ok", 1)
    set_condition(entries, "L1Connected", False, "RPCEndpointUnreachable", "down", 2)

    assert len(entries) == 1
    assert entries[0]["status"] == "False"
    assert entries[0]["reason"] == "RPCEndpointUnreachable"
    assert entries[0]["observedGeneration"] == 2


def test_transition_time_only_moves_on_status_change(monkeypatch):
    times = iter(["2026-01-01T00:00:00Z", "2026-01-01T00:05:00Z", "2026-01-01T00:10:00Z"])
    monkeypatch.setattr(conditions, "now_timestamp", lambda: next(times))

    entries = []
    set_condition(entries, "ConfigurationValid", True, "ValidConfiguration", "ok")
    set_condition(entries, "ConfigurationValid", True, "ValidConfiguration", "still ok")
    assert entries[0]["lastTransitionTime"] == "2026-01-01T00:00:00Z"
    assert entries[0]["message"] == "still ok"

    set_condition(entries, "ConfigurationValid", False, "InvalidConfiguration", "bad")
    assert entries[0]["lastTransitionTime"] == "2026-01-01T00:05:00Z"


def test_observed_generation_kept_when_not_given():
    entries = []
    set_condition(entries, "NetworkReady", True, "NetworkReady", "ok", 3)
    set_condition(entries, "NetworkReady", True, "NetworkReady", "ok")
    assert get_condition(entries, "NetworkReady")["observedGeneration"] == 3


def test_derive_phase():
    required = ("ConfigurationValid", "L1Connected")
    entries = []
    assert derive_phase(entries, required, PHASE_READY) == PHASE_PENDING

    set_condition(entries, "ConfigurationValid", True, "ValidConfiguration", "ok")
    assert derive_phase(entries, required, PHASE_READY) == PHASE_PENDING

    set_condition(entries, "L1Connected", False, "RPCEndpointUnreachable", "down")
    assert derive_phase(entries, required, PHASE_READY) == PHASE_ERROR

    set_condition(entries, "L1Connected", True, "RPCEndpointReachable", "ok")
    assert derive_phase(entries, required, PHASE_READY) == PHASE_READY


def test_remove_condition():
    entries = []
    set_condition(entries, "L2Connected", True, "RPCEndpointReachable", "ok")
    remove_condition(entries, "L2Connected")
    assert entries == []

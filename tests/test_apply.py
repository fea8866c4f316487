import pytest

from opstack_operator.errors import ConflictError
from opstack_operator.services.apply import CONFIG_HASH_ANNOTATION, apply_child, build_owner_ref
from opstack_operator.services.kube import update_with_retry

OWNER = {
    "apiVersion": "optimism.optimism.io/v1alpha1",
    "kind": "OpBatcher",
    "name": "b",
    "uid": "u",
}


def desired_service(port=8548):
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": "batcher", "namespace": "default", "labels": {"a": "b"}},
        "spec": {"selector": {"a": "b"}, "ports": [{"name": "rpc", "port": port}]},
    }


def test_apply_creates_then_is_idempotent(kube):
    """Test applying the same desired object twice writes once."""
    assert apply_child(kube, desired_service(), OWNER)["status"] == "created"
    assert apply_child(kube, desired_service(), OWNER)["status"] == "unchanged"
    assert len(kube.child_writes) == 1

    stored = kube.children[("Service", "default", "batcher")]
    assert stored["metadata"]["ownerReferences"] == [OWNER]
    assert stored["metadata"]["annotations"][CONFIG_HASH_ANNOTATION]


def test_apply_updates_on_drift_and_keeps_cluster_ip(kube):
    apply_child(kube, desired_service(), OWNER)
    kube.children[("Service", "default", "batcher")]["spec"]["clusterIP"] = "10.0.0.7"

    result = apply_child(kube, desired_service(port=9000), OWNER)

    stored = kube.children[("Service", "default", "batcher")]
    assert result["status"] == "updated"
    assert stored["spec"]["ports"][0]["port"] == 9000
    assert stored["spec"]["clusterIP"] == "10.0.0.7"


def test_apply_reverts_in_place_edit(kube):
    """Test an edit that keeps the hash annotation is still corrected."""
    apply_child(kube, desired_service(), OWNER)
    live = kube.children[("Service", "default", "batcher")]
    live["spec"]["ports"][0]["port"] = 1234
    live["metadata"]["labels"]["a"] = "edited"

    result = apply_child(kube, desired_service(), OWNER)

    stored = kube.children[("Service", "default", "batcher")]
    assert result["status"] == "updated"
    assert stored["spec"]["ports"][0]["port"] == 8548
    assert stored["metadata"]["labels"]["a"] == "b"


def test_apply_ignores_server_defaults(kube):
    desired = desired_service()
    desired["spec"]["resources"] = {"limits": {"cpu": "1000m", "memory": "2Gi"}}
    apply_child(kube, desired, OWNER)

    live = kube.children[("Service", "default", "batcher")]
    live["spec"]["sessionAffinity"] = "None"
    live["spec"]["ports"][0]["protocol"] = "TCP"
    live["spec"]["resources"]["limits"]["cpu"] = "1"
    live["metadata"]["annotations"]["kubectl.kubernetes.io/last-applied"] = "{}"
    writes = len(kube.child_writes)

    assert apply_child(kube, desired, OWNER)["status"] == "unchanged"
    assert len(kube.child_writes) == writes


def test_apply_does_not_mutate_desired(kube):
    desired = desired_service()
    apply_child(kube, desired, OWNER)
    assert "ownerReferences" not in desired["metadata"]


def test_build_owner_ref():
    body = {
        "apiVersion": "optimism.optimism.io/v1alpha1",
        "kind": "OpNode",
        "metadata": {"name": "seq", "uid": "1234"},
    }
    ref = build_owner_ref(body)
    assert ref["controller"] is True
    assert ref["uid"] == "1234"
    assert ref["kind"] == "OpNode"


def test_update_with_retry_recovers_from_conflicts(kube):
    kube.add_resource("OpNode", "seq", {"nodeType": "sequencer"})
    kube.pending_conflicts = 2

    def mutate(current):
        current["status"] = {"phase": "Running"}
        return current

    update_with_retry(
        read=lambda: kube.get_resource("OpNode", "default", "seq"),
        mutate=mutate,
        write=lambda body: kube.replace_status("OpNode", "default", "seq", body),
        attempts=3,
    )

    assert kube.resources[("OpNode", "default", "seq")]["status"]["phase"] == "Running"


def test_update_with_retry_gives_up(kube):
    kube.add_resource("OpNode", "seq", {"nodeType": "sequencer"})
    kube.pending_conflicts = 5

    with pytest.raises(ConflictError):
        update_with_retry(
            read=lambda: kube.get_resource("OpNode", "default", "seq"),
            mutate=lambda current: current,
            write=lambda body: kube.replace_status("OpNode", "default", "seq", body),
            attempts=3,
        )


def test_update_with_retry_skips_noop(kube):
    kube.add_resource("OpNode", "seq", {"nodeType": "sequencer"})

    update_with_retry(
        read=lambda: kube.get_resource("OpNode", "default", "seq"),
        mutate=lambda current: None,
        write=lambda body: pytest.fail("no write expected"),
    )

    assert kube.status_writes == []

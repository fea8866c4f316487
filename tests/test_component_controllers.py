import base64

import pytest

from conftest import SEPOLIA_L1, condition, reconcile_until_settled
from opstack_operator.controllers.batcher import BatcherController, validate_batcher_spec
from opstack_operator.controllers.challenger import (
    ChallengerController,
    validate_challenger_spec,
)
from opstack_operator.controllers.proposer import ProposerController, validate_proposer_spec
from opstack_operator.models.batcher import OpBatcherSpec
from opstack_operator.models.challenger import OpChallengerSpec
from opstack_operator.models.proposer import OpProposerSpec

SIGNED = {
    "optimismNetworkRef": {"name": "testnet"},
    "privateKey": {"secretRef": {"name": "signer", "key": "key"}},
}


def stored(kube, kind, name):
    return kube.resources[(kind, "default", name)]


def add_running_sequencer(kube):
    kube.add_resource(
        "OpNode",
        "seq",
        {"optimismNetworkRef": {"name": "testnet"}, "nodeType": "sequencer"},
        status={"phase": "Running"},
    )


def test_batcher_waits_for_network_then_runs(kube, rpc, network_spec, signer_secret):
    """Test the batcher moves from missing network to Pending to Running."""
    controller = BatcherController(kube, rpc)
    kube.add_resource("OpBatcher", "batcher", SIGNED)

    result = reconcile_until_settled(controller, "batcher")
    assert result.phase == "Error"
    assert condition(stored(kube, "OpBatcher", "batcher"), "NetworkReference")["status"] == "False"

    kube.add_resource("OptimismNetwork", "testnet", network_spec, status={"phase": "Pending"})
    result = controller.reconcile("batcher", "default")
    assert result.phase == "Pending"
    assert result.requeue_after == 60
    assert result.phase_changed

    kube.set_phase("OptimismNetwork", "testnet", "Ready")
    result = controller.reconcile("batcher", "default")
    assert result.phase == "Running"
    assert result.requeue_after == 300

    body = stored(kube, "OpBatcher", "batcher")
    assert condition(body, "NetworkReference")["status"] == "True"
    assert condition(body, "PrivateKeyLoaded")["status"] == "True"
    assert condition(body, "L1Connected")["status"] == "True"
    assert condition(body, "DeploymentReady")["status"] == "True"
    assert ("Deployment", "default", "batcher") in kube.children
    assert ("Service", "default", "batcher") in kube.children

    info = body["status"]["batcherInfo"]
    assert info["l2RpcUrl"] == "http://testnet-sequencer.default.svc.cluster.local:8545"
    assert info["privateKeySecret"] == "signer"


def test_batcher_uses_referenced_sequencer(kube, rpc, ready_network, signer_secret):
    add_running_sequencer(kube)
    kube.add_resource("OpBatcher", "batcher", dict(SIGNED, sequencerRef={"name": "seq"}))

    result = reconcile_until_settled(BatcherController(kube, rpc), "batcher")

    assert result.phase == "Running"
    info = stored(kube, "OpBatcher", "batcher")["status"]["batcherInfo"]
    assert info["rollupRpcUrl"] == "http://seq.default.svc.cluster.local:9545"


def test_batcher_waits_for_sequencer(kube, rpc, ready_network, signer_secret):
    add_running_sequencer(kube)
    kube.set_phase("OpNode", "seq", "Pending")
    kube.add_resource("OpBatcher", "batcher", dict(SIGNED, sequencerRef={"name": "seq"}))

    result = reconcile_until_settled(BatcherController(kube, rpc), "batcher")

    assert result.phase == "Pending"
    body = stored(kube, "OpBatcher", "batcher")
    assert condition(body, "SequencerReady")["reason"] == "SequencerNotReady"
    assert ("Deployment", "default", "batcher") not in kube.children


def test_batcher_missing_signer_secret(kube, rpc, ready_network):
    kube.add_resource("OpBatcher", "batcher", SIGNED)

    result = reconcile_until_settled(BatcherController(kube, rpc), "batcher")

    assert result.phase == "Error"
    assert result.requeue_after == 120
    body = stored(kube, "OpBatcher", "batcher")
    assert condition(body, "PrivateKeyLoaded")["reason"] == "SecretNotFound"


def test_batcher_rejects_malformed_key(kube, rpc, ready_network):
    encoded = base64.b64encode(b"not-a-key").decode()
    kube.add_child("Secret", "signer", {"data": {"key": encoded}})
    kube.add_resource("OpBatcher", "batcher", SIGNED)

    reconcile_until_settled(BatcherController(kube, rpc), "batcher")

    body = stored(kube, "OpBatcher", "batcher")
    assert condition(body, "PrivateKeyLoaded")["reason"] == "InvalidPrivateKey"
    assert "not-a-key" not in condition(body, "PrivateKeyLoaded")["message"]


def test_batcher_l1_unreachable(kube, rpc, ready_network, signer_secret):
    rpc.unreachable.add(SEPOLIA_L1)
    kube.add_resource("OpBatcher", "batcher", SIGNED)

    result = reconcile_until_settled(BatcherController(kube, rpc), "batcher")

    assert result.phase == "Error"
    body = stored(kube, "OpBatcher", "batcher")
    assert condition(body, "L1Connected")["reason"] == "ConnectionFailed"


def test_proposer_runs_with_dispute_game_factory(kube, rpc, ready_network, signer_secret):
    kube.add_resource("OpProposer", "proposer", SIGNED)

    result = reconcile_until_settled(ProposerController(kube, rpc), "proposer")

    assert result.phase == "Running"
    deployment = kube.children[("Deployment", "default", "proposer")]
    args = deployment["spec"]["template"]["spec"]["containers"][0]["args"]
    assert "--game-factory-address=0x05F9613aDB30026FFd634f38e5C4dFd30a197Fa1" in args


def test_proposer_pending_without_contracts(kube, rpc, network_spec, signer_secret):
    kube.add_resource("OptimismNetwork", "testnet", network_spec, status={"phase": "Ready"})
    kube.add_resource("OpProposer", "proposer", SIGNED)

    result = reconcile_until_settled(ProposerController(kube, rpc), "proposer")

    assert result.phase == "Pending"
    body = stored(kube, "OpProposer", "proposer")
    assert condition(body, "ContractsDiscovered")["status"] == "False"
    assert ("Deployment", "default", "proposer") not in kube.children
    assert rpc.calls == []


def test_challenger_checks_contracts_before_l1(kube, rpc, network_spec, signer_secret):
    kube.add_resource("OptimismNetwork", "testnet", network_spec, status={"phase": "Ready"})
    kube.add_resource("OpChallenger", "challenger", SIGNED)

    result = reconcile_until_settled(ChallengerController(kube, rpc), "challenger")

    assert result.phase == "Pending"
    body = stored(kube, "OpChallenger", "challenger")
    assert condition(body, "ContractsDiscovered")["reason"] == "DiscoveryFailed"
    assert condition(body, "L1Connected") is None
    assert rpc.calls == []


def test_challenger_runs(kube, rpc, ready_network, signer_secret):
    kube.add_resource("OpChallenger", "challenger", SIGNED)

    result = reconcile_until_settled(ChallengerController(kube, rpc), "challenger")

    assert result.phase == "Running"
    body = stored(kube, "OpChallenger", "challenger")
    assert body["status"]["challengerInfo"]["privateKeySecret"] == "signer"


def test_invalid_component_spec_is_fatal(kube, rpc, ready_network, signer_secret):
    kube.add_resource("OpChallenger", "challenger", dict(SIGNED, traceTypes=["bogus"]))

    result = reconcile_until_settled(ChallengerController(kube, rpc), "challenger")

    assert result.phase == "Error"
    assert result.requeue_after == 300
    body = stored(kube, "OpChallenger", "challenger")
    assert "bogus" in condition(body, "ConfigurationValid")["message"]
    assert rpc.calls == []


def test_deletion_releases_finalizer(kube, rpc, ready_network, signer_secret):
    controller = BatcherController(kube, rpc)
    kube.add_resource("OpBatcher", "batcher", SIGNED)
    reconcile_until_settled(controller, "batcher")

    stored(kube, "OpBatcher", "batcher")["metadata"]["deletionTimestamp"] = "2026-10-18T00:00:00Z"
    result = controller.reconcile("batcher", "default")

    assert result.deleted
    assert stored(kube, "OpBatcher", "batcher")["metadata"]["finalizers"] == []


@pytest.mark.parametrize(
    "controller_class, kind",
    [
        (BatcherController, "OpBatcher"),
        (ProposerController, "OpProposer"),
        (ChallengerController, "OpChallenger"),
    ],
)
def test_steady_state_writes_nothing(
    kube, rpc, ready_network, signer_secret, controller_class, kind
):
    """Test a settled component is left alone by the next reconcile."""
    controller = controller_class(kube, rpc)
    kube.add_resource(kind, "component", dict(SIGNED, sequencerRef={"name": "seq"}))
    add_running_sequencer(kube)
    assert reconcile_until_settled(controller, "component").phase == "Running"
    status_writes = len(kube.status_writes)
    child_writes = len(kube.child_writes)

    result = controller.reconcile("component", "default")

    assert result.phase == "Running"
    assert len(kube.status_writes) == status_writes
    assert len(kube.child_writes) == child_writes


def test_deployment_drift_is_reverted(kube, rpc, ready_network, signer_secret):
    controller = BatcherController(kube, rpc)
    kube.add_resource("OpBatcher", "batcher", SIGNED)
    reconcile_until_settled(controller, "batcher")
    live = kube.children[("Deployment", "default", "batcher")]
    live["spec"]["replicas"] = 0

    controller.reconcile("batcher", "default")

    assert kube.children[("Deployment", "default", "batcher")]["spec"]["replicas"] == 1
    assert ("replace", ("Deployment", "default", "batcher")) in kube.child_writes


@pytest.mark.parametrize(
    "model, validate, fields, problem",
    [
        (OpBatcherSpec, validate_batcher_spec, {}, "optimismNetworkRef.name"),
        (
            OpBatcherSpec,
            validate_batcher_spec,
            {"privateKey": {"secretRef": {"name": "signer"}}},
            "privateKey.secretRef.key",
        ),
        (
            OpBatcherSpec,
            validate_batcher_spec,
            dict(SIGNED, dataAvailability={"type": "celestia"}),
            "dataAvailability.type",
        ),
        (
            OpProposerSpec,
            validate_proposer_spec,
            dict(SIGNED, proposalInterval="soon"),
            "proposalInterval",
        ),
        (
            OpChallengerSpec,
            validate_challenger_spec,
            dict(SIGNED, traceTypes=[]),
            "traceTypes",
        ),
    ],
)
def test_component_validation(model, validate, fields, problem):
    problems = validate(model.model_validate(fields))
    assert any(problem in entry for entry in problems)

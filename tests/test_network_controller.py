import json

import pytest

from conftest import SEPOLIA_L1, condition, reconcile_until_settled
from opstack_operator.controllers.network import FINALIZER, NetworkController
from opstack_operator.discovery import DiscoveryCache, cache_key
from opstack_operator.models.network import OptimismNetworkSpec


@pytest.fixture
def controller(kube, rpc):
    return NetworkController(kube, rpc, DiscoveryCache(rpc))


def stored(kube, name="testnet"):
    return kube.resources[("OptimismNetwork", "default", name)]


def test_first_reconcile_adds_finalizer(kube, controller, network_spec):
    kube.add_resource("OptimismNetwork", "testnet", network_spec)

    result = controller.reconcile("testnet", "default")

    assert result.requeue_after == 0
    assert FINALIZER in stored(kube)["metadata"]["finalizers"]
    assert kube.status_writes == []


def test_reconcile_to_ready(kube, controller, network_spec):
    """Test a reachable well-known network ends Ready with its addresses."""
    kube.add_resource("OptimismNetwork", "testnet", network_spec)

    result = reconcile_until_settled(controller, "testnet")

    body = stored(kube)
    assert result.phase == "Ready"
    assert result.requeue_after == 600
    assert body["status"]["phase"] == "Ready"
    assert body["status"]["observedGeneration"] == 1
    for condition_type in ("ConfigurationValid", "L1Connected", "ContractsDiscovered"):
        assert condition(body, condition_type)["status"] == "True"
    assert condition(body, "L2Connected") is None

    contracts = body["status"]["networkInfo"]["discoveredContracts"]
    assert contracts["discoveryMethod"] == "well-known"
    assert contracts["disputeGameFactoryAddr"]
    assert body["status"]["networkInfo"]["lastUpdated"]


def test_steady_state_does_not_rewrite_status(kube, controller, network_spec):
    kube.add_resource("OptimismNetwork", "testnet", network_spec)
    reconcile_until_settled(controller, "testnet")
    writes = len(kube.status_writes)

    controller.reconcile("testnet", "default")

    assert len(kube.status_writes) == writes


def test_same_chain_ids_is_invalid(kube, rpc, controller, network_spec):
    network_spec["chainID"] = network_spec["l1ChainID"]
    kube.add_resource("OptimismNetwork", "testnet", network_spec)

    result = reconcile_until_settled(controller, "testnet")

    body = stored(kube)
    assert result.phase == "Error"
    assert result.requeue_after == 300
    assert condition(body, "ConfigurationValid")["status"] == "False"
    assert condition(body, "ConfigurationValid")["reason"] == "InvalidConfiguration"
    assert rpc.calls == []


def test_unknown_spec_field_is_invalid(kube, controller, network_spec):
    network_spec["unexpected"] = True
    kube.add_resource("OptimismNetwork", "testnet", network_spec)

    result = reconcile_until_settled(controller, "testnet")

    assert result.phase == "Error"
    assert condition(stored(kube), "ConfigurationValid")["status"] == "False"


def test_unreachable_l1(kube, rpc, controller, network_spec):
    rpc.unreachable.add(SEPOLIA_L1)
    kube.add_resource("OptimismNetwork", "testnet", network_spec)

    result = reconcile_until_settled(controller, "testnet")

    body = stored(kube)
    assert result.phase == "Error"
    assert result.requeue_after == 120
    assert condition(body, "L1Connected")["reason"] == "RPCEndpointUnreachable"
    assert condition(body, "ConfigurationValid")["status"] == "True"


def test_l1_chain_id_mismatch(kube, rpc, controller, network_spec):
    rpc.chain_ids[SEPOLIA_L1] = 1
    kube.add_resource("OptimismNetwork", "testnet", network_spec)

    reconcile_until_settled(controller, "testnet")

    assert "mismatch" in condition(stored(kube), "L1Connected")["message"]


def test_l2_checked_when_configured(kube, rpc, controller, network_spec):
    network_spec["l2RpcUrl"] = "http://l2.example:8545"
    rpc.chain_ids["http://l2.example:8545"] = 11155420
    kube.add_resource("OptimismNetwork", "testnet", network_spec)

    reconcile_until_settled(controller, "testnet")

    assert condition(stored(kube), "L2Connected")["status"] == "True"


def test_discovery_failure(kube, controller, network_spec):
    network_spec.update({"networkName": "devnet", "chainID": 424242})
    kube.add_resource("OptimismNetwork", "testnet", network_spec)

    result = reconcile_until_settled(controller, "testnet")

    assert result.phase == "Error"
    assert result.requeue_after == 300
    assert condition(stored(kube), "ContractsDiscovered")["reason"] == "DiscoveryFailed"


def test_inline_rollup_config_is_published(kube, controller, network_spec):
    network_spec["rollupConfig"] = {"inline": '{"block_time": 2}'}
    network_spec["l2Genesis"] = {"autoDiscover": True}
    kube.add_resource("OptimismNetwork", "testnet", network_spec)

    reconcile_until_settled(controller, "testnet")

    rollup = kube.children[("ConfigMap", "default", "testnet-rollup-config")]
    genesis = kube.children[("ConfigMap", "default", "testnet-genesis")]
    assert rollup["data"]["rollup.json"] == '{"block_time": 2}'
    assert json.loads(genesis["data"]["genesis.json"])["config"]["chainId"] == 11155420
    assert condition(stored(kube), "ConfigMapsReady")["status"] == "True"


def test_generated_rollup_config_uses_discovered_addresses(kube, controller, network_spec):
    network_spec["rollupConfig"] = {"autoDiscover": True}
    kube.add_resource("OptimismNetwork", "testnet", network_spec)

    reconcile_until_settled(controller, "testnet")

    rollup = kube.children[("ConfigMap", "default", "testnet-rollup-config")]
    document = json.loads(rollup["data"]["rollup.json"])
    assert document["l1_system_config_address"] == "0x034edD2A225f7f429A63E0f1D2084B9E0A93b538"


def test_missing_rollup_config_map_is_invalid(kube, controller, network_spec):
    network_spec["rollupConfig"] = {"configMapRef": {"name": "absent", "key": "rollup.json"}}
    kube.add_resource("OptimismNetwork", "testnet", network_spec)

    reconcile_until_settled(controller, "testnet")

    message = condition(stored(kube), "ConfigurationValid")["message"]
    assert "ConfigMap default/absent" in message


def test_deletion_removes_finalizer_and_cache_entry(kube, rpc, network_spec):
    discovery = DiscoveryCache(rpc)
    controller = NetworkController(kube, rpc, discovery)
    kube.add_resource("OptimismNetwork", "testnet", network_spec)
    reconcile_until_settled(controller, "testnet")
    key = cache_key(OptimismNetworkSpec.model_validate(network_spec))
    assert discovery.get(key) is not None

    stored(kube)["metadata"]["deletionTimestamp"] = "2026-10-18T00:00:00Z"
    result = controller.reconcile("testnet", "default")

    assert result.deleted
    assert FINALIZER not in stored(kube)["metadata"]["finalizers"]
    assert discovery.get(key) is None


def test_missing_resource_is_a_noop(controller):
    result = controller.reconcile("absent", "default")

    assert result.phase is None
    assert result.requeue_after is None

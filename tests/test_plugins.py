import pytest

from conftest import FakeKube, FakeRPC
from opstack_operator.discovery import DiscoveryCache
from opstack_operator.plugins import OperatorContext, PluginBase, PluginRegistry


@pytest.fixture
def registry():
    registry = PluginRegistry()
    registry.clear()
    yield registry
    registry.clear()


@pytest.fixture
def context():
    rpc = FakeRPC()
    return OperatorContext(FakeKube(), rpc, DiscoveryCache(rpc))


def test_builtin_plugins_discovered(registry):
    """Test the three builtin plugins load."""
    assert registry.discover_plugins(builtin_only=True) == 3
    assert sorted(registry.list_plugin_names()) == ["components", "network", "nodes"]


def test_initialise_builds_one_controller_per_kind(registry, context):
    registry.discover_plugins(builtin_only=True)

    results = registry.initialise_all_plugins(context)

    assert all(results.values())
    for kind in ("OptimismNetwork", "OpNode", "OpBatcher", "OpProposer", "OpChallenger"):
        controller = registry.get_controller(kind)
        assert controller is not None
        assert controller.kube is context.kube

    assert registry.get_controller("OpUnknown") is None


def test_plugins_share_discovery_cache(registry, context):
    registry.discover_plugins(builtin_only=True)
    registry.initialise_all_plugins(context)

    assert registry.get_controller("OptimismNetwork").discovery is context.discovery


def test_health_and_metadata(registry, context):
    registry.discover_plugins(builtin_only=True)
    registry.initialise_all_plugins(context)

    health = registry.get_plugins_health_status()
    assert health["components"]["controllers"] == ["OpBatcher", "OpProposer", "OpChallenger"]
    assert health["network"]["status"] == "healthy"

    metadata = {entry["name"]: entry for entry in registry.get_plugins_metadata()}
    assert metadata["nodes"]["models"] == ["OpNodeSpec"]


def test_duplicate_plugin_rejected(registry):
    registry.discover_plugins(builtin_only=True)
    plugin = registry.get_plugin("network")

    assert registry.register_plugin(type(plugin)()) is False


def test_non_plugin_rejected(registry):
    assert registry.register_plugin(object()) is False


def test_failed_initialise_reports_false(registry, context):
    class BrokenPlugin(PluginBase):
        name = "broken"
        version = "0.0.1"
        description = "fails to build controllers"
        models = []

        def _build_controllers(self, context):
            raise RuntimeError("boom")

    registry.register_plugin(BrokenPlugin())

    assert registry.initialise_all_plugins(context) == {"broken": False}

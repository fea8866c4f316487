import pytest
import yaml

from opstack_operator.crd.generator import OpStackCRDManager
from opstack_operator.crd.registry import CRDRegistry

KINDS = {"OptimismNetwork", "OpNode", "OpBatcher", "OpProposer", "OpChallenger"}


def test_registry_knows_every_kind():
    registry = CRDRegistry()
    registry.discover_models()

    kinds = {info["kind"] for info in registry.get_all_models().values()}
    assert KINDS <= kinds
    assert registry.get_model_by_kind("OpNode")["plural"] == "opnodes"


def test_crds_in_memory():
    crds = OpStackCRDManager().get_crds_as_dict()

    assert "optimismnetworks.optimism.optimism.io" in crds
    node = crds["opnodes.optimism.optimism.io"]
    version = node["spec"]["versions"][0]
    assert version["name"] == "v1alpha1"
    assert version["subresources"] == {"status": {}}

    spec_schema = version["schema"]["openAPIV3Schema"]["properties"]["spec"]
    assert "nodeType" in spec_schema["properties"]
    status_schema = version["schema"]["openAPIV3Schema"]["properties"]["status"]
    assert status_schema["x-kubernetes-preserve-unknown-fields"] is True


def test_generate_and_validate_files(tmp_path):
    """Test CRD files are written once and skipped when models are unchanged."""
    manager = OpStackCRDManager(output_dir=tmp_path)

    assert manager.generate_all_crds() is True
    assert manager.validate_generated_crds() is True
    assert manager.generate_all_crds() is False

    kustomization = yaml.safe_load((tmp_path / "kustomization.yaml").read_text())
    assert "opbatchers.optimism.optimism.io.yaml" in kustomization["resources"]


def test_apply_creates_missing_crds():
    from kubernetes.client.exceptions import ApiException

    class FakeExtensions:
        def __init__(self):
            self.created = []

        def read_custom_resource_definition(self, name):
            raise ApiException(status=404, reason="Not Found")

        def create_custom_resource_definition(self, body):
            self.created.append(body["metadata"]["name"])

    api = FakeExtensions()
    applied = OpStackCRDManager().apply_crds_to_cluster(api_client=api)

    assert applied == len(api.created)
    assert "opchallengers.optimism.optimism.io" in api.created


def test_registry_rejects_second_model_for_kind():
    from opstack_operator.crd.base import CRDSpec
    from opstack_operator.models.node import OpNodeSpec

    class ImposterSpec(CRDSpec):
        name: str = ""

    register = CRDRegistry.register("optimism.optimism.io", "v1alpha1", "OpNode")
    with pytest.raises(ValueError, match="OpNode already registered"):
        register(ImposterSpec)
    assert CRDRegistry().get_model_by_kind("OpNode")["model"] is OpNodeSpec

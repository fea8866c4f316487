import base64
import copy
import itertools

import pytest
from kubernetes.client.exceptions import ApiException

from opstack_operator.errors import ExternalUnavailable
from opstack_operator.models.common import API_GROUP, API_VERSION

SEPOLIA_L1 = "http://l1.example:8545"


class FakeKube:
    """In-memory stand-in for KubeClient with resourceVersion checks."""

    def __init__(self):
        self.resources = {}
        self.children = {}
        self.status_writes = []
        self.child_writes = []
        self.pending_conflicts = 0
        self._versions = itertools.count(1)

    def _next_version(self):
        return str(next(self._versions))

    def _conflict_check(self, store, key, body):
        existing = store.get(key)
        if existing is None:
            raise ApiException(status=404, reason="Not Found")
        if self.pending_conflicts:
            self.pending_conflicts -= 1
            raise ApiException(status=409, reason="Conflict")
        sent = (body.get("metadata") or {}).get("resourceVersion")
        if sent and sent != existing["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")
        return existing

    def add_resource(self, kind, name, spec, namespace="default", status=None, finalizers=None):
        body = {
            "apiVersion": f"{API_GROUP}/{API_VERSION}",
            "kind": kind,
            "metadata": {
                "name": name,
                "namespace": namespace,
                "uid": f"uid-{name}",
                "generation": 1,
                "resourceVersion": self._next_version(),
                "finalizers": list(finalizers or []),
            },
            "spec": copy.deepcopy(spec),
        }
        if status is not None:
            body["status"] = copy.deepcopy(status)
        self.resources[(kind, namespace, name)] = body
        return body

    def get_resource(self, kind, namespace, name):
        body = self.resources.get((kind, namespace, name))
        if body is None:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(body)

    def replace_resource(self, kind, namespace, name, body):
        key = (kind, namespace, name)
        existing = self._conflict_check(self.resources, key, body)
        updated = copy.deepcopy(body)
        updated["status"] = copy.deepcopy(existing.get("status"))
        if updated.get("spec") != existing.get("spec"):
            updated["metadata"]["generation"] = existing["metadata"]["generation"] + 1
        updated["metadata"]["resourceVersion"] = self._next_version()
        self.resources[key] = updated
        return copy.deepcopy(updated)

    def replace_status(self, kind, namespace, name, body):
        key = (kind, namespace, name)
        existing = self._conflict_check(self.resources, key, body)
        updated = copy.deepcopy(existing)
        updated["status"] = copy.deepcopy(body.get("status"))
        updated["metadata"]["resourceVersion"] = self._next_version()
        self.resources[key] = updated
        self.status_writes.append(key)
        return copy.deepcopy(updated)

    def set_phase(self, kind, name, phase, namespace="default", **extra):
        body = self.resources[(kind, namespace, name)]
        body["status"] = dict(body.get("status") or {}, phase=phase, **extra)

    def add_child(self, kind, name, body_fields, namespace="default"):
        body = {"kind": kind, "metadata": {"name": name, "namespace": namespace}}
        body.update(copy.deepcopy(body_fields))
        body["metadata"]["resourceVersion"] = self._next_version()
        self.children[(kind, namespace, name)] = body
        return body

    def read_child(self, kind, namespace, name):
        body = self.children.get((kind, namespace, name))
        if body is None:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(body)

    def create_child(self, kind, namespace, body):
        key = (kind, namespace, body["metadata"]["name"])
        if key in self.children:
            raise ApiException(status=409, reason="AlreadyExists")
        created = copy.deepcopy(body)
        created["metadata"]["resourceVersion"] = self._next_version()
        self.children[key] = created
        self.child_writes.append(("create", key))
        return copy.deepcopy(created)

    def replace_child(self, kind, namespace, name, body):
        key = (kind, namespace, name)
        self._conflict_check(self.children, key, body)
        updated = copy.deepcopy(body)
        updated["metadata"]["resourceVersion"] = self._next_version()
        self.children[key] = updated
        self.child_writes.append(("replace", key))
        return copy.deepcopy(updated)


class FakeRPC:
    """Answers eth_chainId, eth_getCode and eth_call from tables."""

    def __init__(self, chain_ids=None, code=None, unreachable=(), call_results=None):
        self.chain_ids = dict(chain_ids or {})
        self.code = dict(code or {})
        self.call_results = dict(call_results or {})
        self.unreachable = set(unreachable)
        self.calls = []

    def _check(self, url, method):
        self.calls.append((url, method))
        if url in self.unreachable:
            raise ExternalUnavailable(f"{method} against {url} failed: connection refused")

    def chain_id(self, url, timeout=None):
        self._check(url, "eth_chainId")
        return self.chain_ids[url]

    def get_code(self, url, address, timeout=None):
        self._check(url, "eth_getCode")
        return self.code.get((url, address.lower()), "0x")

    def eth_call(self, url, to, data, timeout=None):
        self._check(url, "eth_call")
        result = self.call_results.get((url, to.lower(), data))
        if result is None:
            raise ExternalUnavailable(f"eth_call against {url} returned error: execution reverted")
        return result


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep operator settings from the host environment out of tests."""
    for var in (
        "SUPERCHAIN_REGISTRY_URL",
        "DISCOVERY_CACHE_TTL",
        "OP_IMAGE_REGISTRY",
        "OP_NODE_IMAGE",
        "OP_GETH_IMAGE",
        "STATUS_UPDATE_ATTEMPTS",
        "REQUEUE_TICK_SECONDS",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def kube():
    return FakeKube()


@pytest.fixture
def rpc():
    return FakeRPC(chain_ids={SEPOLIA_L1: 11155111})


@pytest.fixture
def network_spec():
    return {
        "networkName": "op-sepolia",
        "chainID": 11155420,
        "l1ChainID": 11155111,
        "l1RpcUrl": SEPOLIA_L1,
    }


@pytest.fixture
def ready_network(kube, network_spec):
    """An OptimismNetwork that already reached Ready with published addresses."""
    return kube.add_resource(
        "OptimismNetwork",
        "testnet",
        network_spec,
        finalizers=["optimismnetwork.optimism.io/finalizer"],
        status={
            "phase": "Ready",
            "networkInfo": {
                "discoveredContracts": {
                    "disputeGameFactoryAddr": "0x05F9613aDB30026FFd634f38e5C4dFd30a197Fa1",
                    "l2OutputOracleAddr": "0x90E9c4f8a994a250F6aEfd61CAFb4F2e895D458F",
                    "discoveryMethod": "well-known",
                },
            },
        },
    )


SIGNER_KEY = "0x" + "0123456789abcdef" * 4


@pytest.fixture
def signer_secret(kube):
    encoded = base64.b64encode(SIGNER_KEY.encode()).decode()
    return kube.add_child("Secret", "signer", {"data": {"key": encoded}})


def condition(body, condition_type):
    for entry in (body.get("status") or {}).get("conditions") or []:
        if entry["type"] == condition_type:
            return entry
    return None


def reconcile_until_settled(controller, name, namespace="default"):
    """Run past the finalizer round trip and return the settled result."""
    result = controller.reconcile(name, namespace)
    if result.requeue_after == 0:
        result = controller.reconcile(name, namespace)
    return result

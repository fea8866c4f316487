import base64

import pytest
from kubernetes.client.exceptions import ApiException

from opstack_operator.errors import SecretInputError
from opstack_operator.services.credentials import (
    SECRET_KIND_JWT,
    SECRET_KIND_P2P,
    ensure_secret,
    load_config_map_value,
    load_secret_value,
    validate_private_key,
)

OWNER = {"apiVersion": "optimism.optimism.io/v1alpha1", "kind": "OpNode", "name": "n", "uid": "u"}


def test_ensure_secret_creates_at_most_once(kube):
    """Test a generated secret is never regenerated."""
    first = ensure_secret(kube, OWNER, "default", "node-jwt", SECRET_KIND_JWT)
    value = kube.children[("Secret", "default", "node-jwt")]["data"]["jwt"]

    second = ensure_secret(kube, OWNER, "default", "node-jwt", SECRET_KIND_JWT)

    assert first["status"] == "created"
    assert second["status"] == "exists"
    assert kube.children[("Secret", "default", "node-jwt")]["data"]["jwt"] == value
    assert len(kube.child_writes) == 1


def test_generated_secret_shape(kube):
    ensure_secret(kube, OWNER, "default", "node-p2p", SECRET_KIND_P2P, labels={"a": "b"})
    secret = kube.children[("Secret", "default", "node-p2p")]

    decoded = base64.b64decode(secret["data"]["private-key"]).decode()
    assert len(decoded) == 64
    int(decoded, 16)
    assert secret["metadata"]["ownerReferences"] == [OWNER]
    assert secret["metadata"]["labels"] == {"a": "b"}


def test_lost_create_race_is_not_an_error(kube, monkeypatch):
    """Test a 409 on create means another writer got there first."""
    kube.add_child("Secret", "node-jwt", {"data": {"jwt": "b3RoZXI="}})

    def stale_read(kind, namespace, name):
        raise ApiException(status=404, reason="Not Found")

    monkeypatch.setattr(kube, "read_child", stale_read)

    result = ensure_secret(kube, OWNER, "default", "node-jwt", SECRET_KIND_JWT)

    assert result["status"] == "exists"
    assert kube.children[("Secret", "default", "node-jwt")]["data"]["jwt"] == "b3RoZXI="


def test_load_secret_value(kube, signer_secret):
    assert load_secret_value(kube, "default", "signer", "key").startswith("0x")


def test_load_secret_value_missing_key(kube, signer_secret):
    with pytest.raises(SecretInputError) as excinfo:
        load_secret_value(kube, "default", "signer", "other")
    assert "other" in str(excinfo.value)


def test_load_secret_value_missing_secret(kube):
    with pytest.raises(SecretInputError) as excinfo:
        load_secret_value(kube, "default", "absent", "key")
    assert "absent" in str(excinfo.value)


def test_load_config_map_value(kube):
    kube.add_child("ConfigMap", "rollup", {"data": {"rollup.json": "{}"}})
    assert load_config_map_value(kube, "default", "rollup", "rollup.json") == "{}"
    with pytest.raises(SecretInputError):
        load_config_map_value(kube, "default", "rollup", "genesis.json")


@pytest.mark.parametrize(
    "value, problem",
    [
        ("", "empty"),
        ("0123", "0x"),
        ("0x1234", "66"),
        ("0x" + "zz" * 32, "hex"),
    ],
)
def test_validate_private_key_problems(value, problem):
    assert problem in validate_private_key(value)


def test_validate_private_key_ok():
    assert validate_private_key("0x" + "ab" * 32) is None
    assert validate_private_key("  0x" + "ab" * 32 + "\n") is None

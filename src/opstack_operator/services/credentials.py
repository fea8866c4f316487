""" Generated credentials and externally provided secret inputs.

Generated secrets are create-if-absent: once a secret exists it is never
rewritten, because running workloads already hold its value.
"""

import base64
import logging
from secrets import token_hex

from kubernetes.client.exceptions import ApiException

from opstack_operator.errors import SecretInputError

logger = logging.getLogger(__name__)

SECRET_KIND_JWT = "jwt"
SECRET_KIND_P2P = "p2p"

JWT_SECRET_KEY = "jwt"
P2P_SECRET_KEY = "private-key"

# kind -> (data key, byte length)
SECRET_LAYOUTS = {
    SECRET_KIND_JWT: (JWT_SECRET_KEY, 32),
    SECRET_KIND_P2P: (P2P_SECRET_KEY, 32),
}

PRIVATE_KEY_LENGTH = 66


def generate_secret_value(kind):
    """Random hex material for a secret kind."""
    _, length = SECRET_LAYOUTS[kind]
    return token_hex(length)


def _encode(value):
    return base64.b64encode(value.encode()).decode()


def _decode(value):
    return base64.b64decode(value).decode()


def ensure_secret(kube, owner_ref, namespace, name, kind, labels=None):
    """ Create a generated secret unless one with this name already exists.

    Args:
        kube: KubeClient (or compatible)
        owner_ref: Owner reference for garbage collection
        namespace: Namespace of the secret
        name: Secret name
        kind: One of SECRET_KIND_JWT, SECRET_KIND_P2P
        labels: Extra labels for the secret
    """
    try:
        kube.read_child("Secret", namespace, name)
        logger.debug(f"Secret {namespace}/{name} already exists")
        return {"status": "exists", "name": name}
    except ApiException as e:
        if e.status != 404:
            raise

    key, _ = SECRET_LAYOUTS[kind]
    body = {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "Opaque",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": dict(labels or {}),
            "ownerReferences": [owner_ref],
        },
        "data": {key: _encode(generate_secret_value(kind))},
    }

    try:
        kube.create_child("Secret", namespace, body)
    except ApiException as e:
        # Lost a race with another writer; theirs stands
        if e.status == 409:
            return {"status": "exists", "name": name}
        raise

    logger.info(f"Created {kind} secret {namespace}/{name}")
    return {"status": "created", "name": name}


def load_secret_value(kube, namespace, name, key):
    """ Read one key of an existing Secret.

    Raises:
        SecretInputError: naming the missing secret or key
    """
    try:
        secret = kube.read_child("Secret", namespace, name)
    except ApiException as e:
        if e.status == 404:
            raise SecretInputError("Secret", namespace, name)
        raise

    data = secret.get("data") or {}
    if key in data:
        return _decode(data[key])

    string_data = secret.get("stringData") or {}
    if key in string_data:
        return string_data[key]

    raise SecretInputError("Secret", namespace, name, key)


def load_config_map_value(kube, namespace, name, key):
    """ Read one key of an existing ConfigMap.

    Raises:
        SecretInputError: naming the missing config map or key
    """
    try:
        config_map = kube.read_child("ConfigMap", namespace, name)
    except ApiException as e:
        if e.status == 404:
            raise SecretInputError("ConfigMap", namespace, name)
        raise

    data = config_map.get("data") or {}
    if key not in data:
        raise SecretInputError("ConfigMap", namespace, name, key)
    return data[key]


def validate_private_key(value):
    """ Check an L1 signer key looks like 0x-prefixed 32-byte hex.

    Returns:
        str: Problem description, or None if the key is usable
    """
    value = (value or "").strip()
    if not value:
        return "private key is empty"
    if not value.startswith("0x"):
        return "private key must start with 0x"
    if len(value) != PRIVATE_KEY_LENGTH:
        return f"private key must be {PRIVATE_KEY_LENGTH} characters long"
    try:
        int(value[2:], 16)
    except ValueError:
        return "private key is not hex encoded"
    return None

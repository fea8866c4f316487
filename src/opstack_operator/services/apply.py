""" Idempotent create-or-update of child resources.
"""

import hashlib
import json
import logging

from kubernetes.client.exceptions import ApiException

from opstack_operator.services.kube import update_with_retry
from opstack_operator.utils.units import parse_quantity

logger = logging.getLogger(__name__)

CONFIG_HASH_ANNOTATION = "optimism.io/config-hash"


def config_hash(body):
    """Stable digest of a desired object, used to skip no-op updates."""
    payload = json.dumps(body, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode()).hexdigest()


def build_owner_ref(body):
    """ Owner reference pointing at a custom resource body.

    Args:
        body: The owning resource as a dict
    """
    return {
        "apiVersion": body["apiVersion"],
        "kind": body["kind"],
        "name": body["metadata"]["name"],
        "uid": body["metadata"]["uid"],
        "controller": True,
        "blockOwnerDeletion": True,
    }


def _preserve_cluster_fields(kind, desired, existing):
    """Carry over fields the cluster owns so a replace does not fight it."""
    desired["metadata"]["resourceVersion"] = existing["metadata"].get("resourceVersion")

    existing_spec = existing.get("spec") or {}
    if kind == "Service":
        for field in ("clusterIP", "clusterIPs", "healthCheckNodePort"):
            if existing_spec.get(field):
                desired["spec"][field] = existing_spec[field]
    elif kind == "StatefulSet":
        # Claim templates are immutable once the set exists
        if existing_spec.get("volumeClaimTemplates") is not None:
            desired["spec"]["volumeClaimTemplates"] = existing_spec["volumeClaimTemplates"]


def _same_quantity(desired, live):
    if not isinstance(desired, (str, int, float)) or not isinstance(live, (str, int, float)):
        return False
    if isinstance(desired, bool) or isinstance(live, bool):
        return False
    try:
        return abs(parse_quantity(desired) - parse_quantity(live)) < 1e-9
    except ValueError:
        return False


def _matches(desired, live):
    """ True when every field the desired object sets has the same value live.

    Fields only present on the live object (server defaults, status) are
    ignored. Quantities are compared by value, so '1000m' matches '1'.
    """
    if isinstance(desired, dict):
        if live is None and not desired:
            return True
        if not isinstance(live, dict):
            return False
        return all(_matches(value, live.get(key)) for key, value in desired.items())
    if isinstance(desired, list):
        if live is None and not desired:
            return True
        if not isinstance(live, list) or len(desired) != len(live):
            return False
        return all(_matches(d, l) for d, l in zip(desired, live))
    return desired == live or _same_quantity(desired, live)


def owned_fields(body):
    """The part of a child object this operator sets and keeps in sync."""
    owned = {key: value for key, value in body.items() if key not in ("metadata", "status")}
    metadata = body.get("metadata") or {}
    owned["metadata"] = {
        key: metadata[key]
        for key in ("labels", "annotations", "ownerReferences")
        if key in metadata
    }
    return owned


def apply_child(kube, desired, owner_ref):
    """ Create the child if absent, otherwise update it when it drifted.

    Drift is any owned field whose live value differs from the desired one,
    whether the builder output changed or the object was edited in place.

    Args:
        kube: KubeClient (or compatible)
        desired: Desired object dict from a builder
        owner_ref: Owner reference added to the object

    Returns:
        dict: {"status": "created" | "updated" | "unchanged", "kind": ..., "name": ...}
    """
    kind = desired["kind"]
    name = desired["metadata"]["name"]
    namespace = desired["metadata"]["namespace"]

    body = json.loads(json.dumps(desired))
    body["metadata"]["ownerReferences"] = [owner_ref]
    digest = config_hash(body)
    body["metadata"].setdefault("annotations", {})[CONFIG_HASH_ANNOTATION] = digest

    try:
        kube.read_child(kind, namespace, name)
    except ApiException as e:
        if e.status != 404:
            raise
        kube.create_child(kind, namespace, body)
        logger.info(f"Created {kind} {namespace}/{name}")
        return {"status": "created", "kind": kind, "name": name}

    def mutate(existing):
        updated = json.loads(json.dumps(body))
        _preserve_cluster_fields(kind, updated, existing)
        # The hash annotation is part of the owned fields, so a changed
        # builder output and an out-of-band edit both show up here
        if _matches(owned_fields(updated), existing):
            return None
        return updated

    result = {"status": "unchanged", "kind": kind, "name": name}

    def write(updated):
        kube.replace_child(kind, namespace, name, updated)
        result["status"] = "updated"
        logger.info(f"Updated {kind} {namespace}/{name}")

    update_with_retry(
        read=lambda: kube.read_child(kind, namespace, name),
        mutate=mutate,
        write=write,
    )
    return result

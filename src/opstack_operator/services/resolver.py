""" Lookup of referenced OP Stack resources and their readiness.

Nothing here is cached: every call reads the referent's current state.
"""

import logging

from kubernetes.client.exceptions import ApiException

from opstack_operator.errors import DependencyNotFound, DependencyNotReady, WrongKind
from opstack_operator.models.node import NODE_TYPE_SEQUENCER
from opstack_operator.utils.conditions import PHASE_READY, PHASE_RUNNING

logger = logging.getLogger(__name__)

KIND_NETWORK = "OptimismNetwork"
KIND_NODE = "OpNode"

READY_PHASES = {
    KIND_NETWORK: PHASE_READY,
    KIND_NODE: PHASE_RUNNING,
}


def fetch_reference(kube, kind, ref, default_namespace):
    """ Fetch the resource a reference points at.

    Args:
        kube: KubeClient (or compatible)
        kind: Expected kind of the referent
        ref: CRDReference model
        default_namespace: Referrer's namespace

    Raises:
        DependencyNotFound: the referent does not exist
    """
    namespace = ref.resolve_namespace(default_namespace)
    try:
        return kube.get_resource(kind, namespace, ref.name)
    except ApiException as e:
        if e.status == 404:
            raise DependencyNotFound(kind, namespace, ref.name)
        raise


def resolve_network(kube, ref, default_namespace):
    return fetch_reference(kube, KIND_NETWORK, ref, default_namespace)


def resolve_sequencer(kube, ref, default_namespace):
    """ Fetch an OpNode and make sure it is a sequencer.

    Raises:
        DependencyNotFound: no such OpNode
        WrongKind: the OpNode is not a sequencer
    """
    body = fetch_reference(kube, KIND_NODE, ref, default_namespace)
    node_type = (body.get("spec") or {}).get("nodeType")
    if node_type != NODE_TYPE_SEQUENCER:
        namespace = ref.resolve_namespace(default_namespace)
        raise WrongKind(
            f"OpNode {namespace}/{ref.name} is a {node_type or 'untyped'} node, not a sequencer"
        )
    return body


def phase_of(body):
    return (body.get("status") or {}).get("phase")


def is_ready(kind, body):
    return phase_of(body) == READY_PHASES[kind]


def require_ready(kind, body):
    """ Raise DependencyNotReady unless the referent reached its ready phase.
    """
    if not is_ready(kind, body):
        metadata = body.get("metadata") or {}
        raise DependencyNotReady(
            kind, metadata.get("namespace"), metadata.get("name"), phase_of(body)
        )
    return body

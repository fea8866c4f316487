""" Pipeline steps shared by several controllers.

Each function takes the ReconcileContext first, records its conditions on
it and returns a StepResult. Resolved objects are left in ctx.values for
later steps.
"""

import logging

from kubernetes.client.exceptions import ApiException

from opstack_operator.controllers.base import (
    REQUEUE_APPLY,
    REQUEUE_DEPENDENCY_ERROR,
    REQUEUE_DEPENDENCY_NOT_READY,
    REQUEUE_EXTERNAL,
    StepResult,
)
from opstack_operator.errors import (
    DependencyNotFound,
    DependencyNotReady,
    ExternalUnavailable,
    OperatorError,
    SecretInputError,
    WrongKind,
)
from opstack_operator.models.network import OptimismNetworkSpec
from opstack_operator.models.node import OpNodeSpec
from opstack_operator.resources.deployment import sequencer_urls
from opstack_operator.services import resolver
from opstack_operator.services.apply import apply_child
from opstack_operator.services.credentials import load_secret_value, validate_private_key
from opstack_operator.services.rpc import check_chain_id
from opstack_operator.utils.conditions import (
    CONDITION_CONTRACTS_DISCOVERED,
    CONDITION_L1_CONNECTED,
    CONDITION_NETWORK_READY,
    CONDITION_NETWORK_REFERENCE,
    CONDITION_PRIVATE_KEY_LOADED,
    CONDITION_SEQUENCER_READY,
    CONDITION_SEQUENCER_REFERENCE,
    PHASE_PENDING,
    REASON_ADDRESSES_RESOLVED,
    REASON_CONNECTION_ESTABLISHED,
    REASON_CONNECTION_FAILED,
    REASON_DISCOVERY_FAILED,
    REASON_INVALID_PRIVATE_KEY,
    REASON_INVALID_SEQUENCER,
    REASON_NETWORK_FOUND,
    REASON_NETWORK_NOT_FOUND,
    REASON_NETWORK_NOT_READY,
    REASON_NETWORK_READY,
    REASON_SECRET_FOUND,
    REASON_SECRET_NOT_FOUND,
    REASON_SEQUENCER_FOUND,
    REASON_SEQUENCER_NOT_FOUND,
    REASON_SEQUENCER_NOT_READY,
    REASON_SEQUENCER_READY,
)
from opstack_operator.utils.units import parse_duration

logger = logging.getLogger(__name__)


def resolve_network(ctx, kube, ref):
    """ Resolve the OptimismNetwork reference and require it to be Ready.

    Leaves network (spec), network_name and network_status in ctx.values.
    """
    try:
        body = resolver.resolve_network(kube, ref, ctx.namespace)
    except DependencyNotFound as e:
        return ctx.fail(
            CONDITION_NETWORK_REFERENCE, REASON_NETWORK_NOT_FOUND, str(e), REQUEUE_DEPENDENCY_ERROR
        )
    ctx.mark(
        CONDITION_NETWORK_REFERENCE, REASON_NETWORK_FOUND, "OptimismNetwork reference resolved"
    )

    try:
        resolver.require_ready(resolver.KIND_NETWORK, body)
    except DependencyNotReady as e:
        return ctx.fail(
            CONDITION_NETWORK_READY,
            REASON_NETWORK_NOT_READY,
            str(e),
            REQUEUE_DEPENDENCY_NOT_READY,
            phase=PHASE_PENDING,
        )

    ctx.values["network"] = OptimismNetworkSpec.model_validate(body.get("spec") or {})
    ctx.values["network_name"] = body["metadata"]["name"]
    ctx.values["network_status"] = body.get("status") or {}
    return ctx.succeed(CONDITION_NETWORK_READY, REASON_NETWORK_READY, "OptimismNetwork is ready")


def resolve_sequencer(ctx, kube, ref, require_running=True):
    """ Resolve a sequencer OpNode reference, if one is set.

    Leaves sequencer as (name, namespace, OpNodeSpec) or None in ctx.values.

    Args:
        require_running: Also require the sequencer to be Running
    """
    ctx.values["sequencer"] = None
    if ref is None or not ref.name:
        return StepResult.success()

    try:
        body = resolver.resolve_sequencer(kube, ref, ctx.namespace)
    except DependencyNotFound as e:
        return ctx.fail(
            CONDITION_SEQUENCER_REFERENCE,
            REASON_SEQUENCER_NOT_FOUND,
            str(e),
            REQUEUE_DEPENDENCY_ERROR,
        )
    except WrongKind as e:
        return ctx.fail(
            CONDITION_SEQUENCER_REFERENCE,
            REASON_INVALID_SEQUENCER,
            str(e),
            REQUEUE_DEPENDENCY_ERROR,
        )
    ctx.mark(CONDITION_SEQUENCER_REFERENCE, REASON_SEQUENCER_FOUND, "Sequencer OpNode resolved")

    ctx.values["sequencer"] = (
        ref.name,
        ref.resolve_namespace(ctx.namespace),
        OpNodeSpec.model_validate(body.get("spec") or {}),
    )
    if not require_running:
        return StepResult.success()

    try:
        resolver.require_ready(resolver.KIND_NODE, body)
    except DependencyNotReady as e:
        return ctx.fail(
            CONDITION_SEQUENCER_READY,
            REASON_SEQUENCER_NOT_READY,
            str(e),
            REQUEUE_DEPENDENCY_NOT_READY,
            phase=PHASE_PENDING,
        )
    return ctx.succeed(CONDITION_SEQUENCER_READY, REASON_SEQUENCER_READY, "Sequencer is running")


def sequencer_endpoints(ctx):
    """ Execution and rollup RPC URLs of the sequencer this component talks to.

    Without a sequencerRef the network's conventional sequencer service is
    assumed.
    """
    sequencer = ctx.values.get("sequencer")
    if sequencer is not None:
        return sequencer_urls(*sequencer)

    host = f"{ctx.values['network_name']}-sequencer.{ctx.namespace}.svc.cluster.local"
    return f"http://{host}:8545", f"http://{host}:9545"


def load_private_key(ctx, kube, key_ref):
    """ Check the signer key secret exists and holds a usable key.

    The value itself is not kept; the workload mounts the secret.
    """
    selector = key_ref.secretRef
    try:
        value = load_secret_value(kube, ctx.namespace, selector.name, selector.key)
    except SecretInputError as e:
        return ctx.fail(
            CONDITION_PRIVATE_KEY_LOADED, REASON_SECRET_NOT_FOUND, str(e), REQUEUE_EXTERNAL
        )

    problem = validate_private_key(value)
    if problem is not None:
        return ctx.fail(
            CONDITION_PRIVATE_KEY_LOADED,
            REASON_INVALID_PRIVATE_KEY,
            f"Secret {ctx.namespace}/{selector.name} key '{selector.key}': {problem}",
            REQUEUE_EXTERNAL,
        )
    return ctx.succeed(
        CONDITION_PRIVATE_KEY_LOADED, REASON_SECRET_FOUND, "Private key loaded from secret"
    )


def rpc_timeout(network):
    """Per-network RPC timeout in seconds, or None for the client default."""
    return parse_duration(network.l1RpcTimeout)


def probe_l1(ctx, rpc, network):
    try:
        check_chain_id(rpc, network.l1RpcUrl, network.l1ChainID, timeout=rpc_timeout(network))
    except ExternalUnavailable as e:
        return ctx.fail(CONDITION_L1_CONNECTED, REASON_CONNECTION_FAILED, str(e), REQUEUE_EXTERNAL)
    return ctx.succeed(
        CONDITION_L1_CONNECTED, REASON_CONNECTION_ESTABLISHED, "Connected to L1 RPC endpoint"
    )


def apply_desired(ctx, kube, desired, condition, ok_reason, failed_reason):
    """ Apply one child object and record the outcome as a condition.
    """
    kind = desired["kind"]
    try:
        outcome = apply_child(kube, desired, ctx.owner_ref)
    except (ApiException, OperatorError) as e:
        logger.warning(f"Failed to apply {kind} {ctx.namespace}/{ctx.name}: {e}")
        return ctx.fail(condition, failed_reason, f"Failed to reconcile {kind}: {e}", REQUEUE_APPLY)
    logger.debug(f"{kind} {ctx.namespace}/{outcome['name']} {outcome['status']}")
    return ctx.succeed(condition, ok_reason, f"{kind} reconciled")


def signer_reference_problems(spec):
    """ Problems with the references every L1-signing component needs.
    """
    problems = []
    if not spec.optimismNetworkRef.name:
        problems.append("optimismNetworkRef.name is required")

    secret_ref = spec.privateKey.secretRef
    if secret_ref is None or not secret_ref.name:
        problems.append("privateKey.secretRef.name is required")
    elif not secret_ref.key:
        problems.append("privateKey.secretRef.key is required")
    return problems


def component_info(ctx, l2_rpc_url, rollup_rpc_url):
    """Info block shared by batcher, proposer and challenger status."""
    return {
        "l2RpcUrl": l2_rpc_url,
        "rollupRpcUrl": rollup_rpc_url,
        "privateKeySecret": ctx.spec.privateKey.secretRef.name,
    }


def require_contracts(ctx, fields):
    """ Require the network to have published the named contract addresses.

    Leaves contracts (the discoveredContracts block) in ctx.values.

    Args:
        fields: Address field names, at least one of which must be set
    """
    network_info = ctx.values["network_status"].get("networkInfo") or {}
    contracts = network_info.get("discoveredContracts") or {}
    if not any(contracts.get(field) for field in fields):
        return ctx.fail(
            CONDITION_CONTRACTS_DISCOVERED,
            REASON_DISCOVERY_FAILED,
            f"OptimismNetwork has not published {' or '.join(fields)}",
            REQUEUE_DEPENDENCY_NOT_READY,
            phase=PHASE_PENDING,
        )

    ctx.values["contracts"] = contracts
    return ctx.succeed(
        CONDITION_CONTRACTS_DISCOVERED,
        REASON_ADDRESSES_RESOLVED,
        "Contract addresses available from OptimismNetwork",
    )

""" OpNode controller: one op-geth + op-node pair per resource.
"""

import logging

from kubernetes.client.exceptions import ApiException

from opstack_operator.controllers.base import (
    REQUEUE_APPLY,
    REQUEUE_DEPENDENCY_ERROR,
    REQUEUE_EXTERNAL,
    REQUEUE_SUCCESS,
    REQUEUE_VALIDATION,
    Reconciler,
    Step,
    StepResult,
)
from opstack_operator.controllers.component import validation_result
from opstack_operator.controllers.steps import apply_desired, resolve_network, resolve_sequencer
from opstack_operator.errors import SecretInputError
from opstack_operator.models.node import NODE_TYPE_REPLICA, NODE_TYPE_SEQUENCER, OpNodeSpec
from opstack_operator.resources.service import build_node_service
from opstack_operator.resources.statefulset import (
    build_node_statefulset,
    jwt_secret_name,
    node_labels,
    p2p_secret_name,
    sequencer_endpoint,
)
from opstack_operator.services.credentials import (
    JWT_SECRET_KEY,
    P2P_SECRET_KEY,
    SECRET_KIND_JWT,
    SECRET_KIND_P2P,
    ensure_secret,
    load_secret_value,
)
from opstack_operator.services.resolver import KIND_NODE
from opstack_operator.utils.conditions import (
    CONDITION_CONFIGURATION_VALID,
    CONDITION_NETWORK_READY,
    CONDITION_SECRETS_READY,
    CONDITION_SEQUENCER_REFERENCE,
    CONDITION_SERVICE_READY,
    CONDITION_STATEFULSET_READY,
    PHASE_RUNNING,
    REASON_INVALID_CONFIGURATION,
    REASON_NETWORK_NOT_READY,
    REASON_SECRETS_CREATED,
    REASON_SECRETS_FAILED,
    REASON_SEQUENCER_NOT_FOUND,
    REASON_SERVICE_FAILED,
    REASON_SERVICE_RECONCILED,
    REASON_STATEFULSET_FAILED,
    REASON_STATEFULSET_RECONCILED,
)
from opstack_operator.utils.units import parse_quantity

logger = logging.getLogger(__name__)

FINALIZER = "opnode.optimism.io/finalizer"
NODE_TYPES = (NODE_TYPE_SEQUENCER, NODE_TYPE_REPLICA)


def validate_node_spec(spec):
    """ Static checks on an OpNode spec.

    Returns:
        list: Problems found, empty when the spec is valid
    """
    problems = []
    if not spec.optimismNetworkRef.name:
        problems.append("optimismNetworkRef.name is required")

    if not spec.nodeType:
        problems.append("nodeType is required")
    elif spec.nodeType not in NODE_TYPES:
        problems.append("nodeType must be 'sequencer' or 'replica'")

    if spec.is_sequencer:
        sequencer = spec.opNode.sequencer
        if sequencer is None or not sequencer.enabled:
            problems.append("sequencer nodes require opNode.sequencer.enabled")

        p2p = spec.opNode.p2p
        if p2p is not None and p2p.discovery is not None and p2p.discovery.enabled:
            problems.append("sequencer nodes must run with P2P discovery disabled")

        if spec.l2RpcUrl and not spec.l2RpcUrl.startswith(("http://", "https://")):
            problems.append("l2RpcUrl must be an HTTP or HTTPS URL")

    storage = spec.opGeth.storage
    if storage is not None:
        try:
            size = parse_quantity(storage.size)
        except ValueError:
            size = 0
        if not size:
            problems.append("opGeth.storage.size must be a non-zero quantity")

    return problems


class NodeController:
    """Reconciles OpNode resources."""

    kind = KIND_NODE
    finalizer = FINALIZER
    spec_model = OpNodeSpec
    info_key = "nodeInfo"
    ready_phase = PHASE_RUNNING
    success_requeue = REQUEUE_SUCCESS

    def __init__(self, kube):
        self.kube = kube
        self.reconciler = Reconciler(kube, self)

    def reconcile(self, name, namespace):
        return self.reconciler.reconcile(name, namespace)

    def steps(self):
        return [
            Step(
                "validate",
                self.validate,
                CONDITION_CONFIGURATION_VALID,
                REASON_INVALID_CONFIGURATION,
                REQUEUE_VALIDATION,
            ),
            Step(
                "network",
                lambda ctx: resolve_network(ctx, self.kube, ctx.spec.optimismNetworkRef),
                CONDITION_NETWORK_READY,
                REASON_NETWORK_NOT_READY,
                REQUEUE_DEPENDENCY_ERROR,
            ),
            Step(
                "sequencer",
                self.check_sequencer,
                CONDITION_SEQUENCER_REFERENCE,
                REASON_SEQUENCER_NOT_FOUND,
                REQUEUE_DEPENDENCY_ERROR,
            ),
            Step(
                "secrets",
                self.ensure_secrets,
                CONDITION_SECRETS_READY,
                REASON_SECRETS_FAILED,
                REQUEUE_EXTERNAL,
            ),
            Step(
                "statefulset",
                self.apply_statefulset,
                CONDITION_STATEFULSET_READY,
                REASON_STATEFULSET_FAILED,
                REQUEUE_APPLY,
            ),
            Step(
                "service",
                self.apply_service,
                CONDITION_SERVICE_READY,
                REASON_SERVICE_FAILED,
                REQUEUE_APPLY,
            ),
        ]

    def cleanup(self, ctx):
        # Children carry owner references; garbage collection removes them
        logger.info(f"Cleaned up OpNode {ctx.namespace}/{ctx.name}")

    def validate(self, ctx):
        return validation_result(ctx, validate_node_spec(ctx.spec))

    def check_sequencer(self, ctx):
        if ctx.spec.is_sequencer:
            return StepResult.success()
        return resolve_sequencer(ctx, self.kube, ctx.spec.sequencerRef, require_running=False)

    def ensure_secrets(self, ctx):
        spec = ctx.spec
        labels = node_labels(ctx.name, spec, ctx.values["network"])
        created = []

        try:
            jwt = spec.opNode.engine.jwtSecret if spec.opNode.engine else None
            if jwt is not None and jwt.secretRef is not None and jwt.secretRef.name:
                load_secret_value(
                    self.kube,
                    ctx.namespace,
                    jwt.secretRef.name,
                    jwt.secretRef.key or JWT_SECRET_KEY,
                )
            else:
                result = ensure_secret(
                    self.kube,
                    ctx.owner_ref,
                    ctx.namespace,
                    jwt_secret_name(ctx.name, spec),
                    SECRET_KIND_JWT,
                    labels,
                )
                if result["status"] == "created":
                    created.append(result["name"])

            p2p = spec.opNode.p2p
            private_key = p2p.privateKey if p2p is not None else None
            if private_key is not None and private_key.generate:
                result = ensure_secret(
                    self.kube,
                    ctx.owner_ref,
                    ctx.namespace,
                    p2p_secret_name(ctx.name, spec),
                    SECRET_KIND_P2P,
                    labels,
                )
                if result["status"] == "created":
                    created.append(result["name"])
            elif private_key is not None and private_key.secretRef is not None:
                ref = private_key.secretRef
                load_secret_value(self.kube, ctx.namespace, ref.name, ref.key or P2P_SECRET_KEY)
        except (SecretInputError, ApiException) as e:
            return ctx.fail(
                CONDITION_SECRETS_READY, REASON_SECRETS_FAILED, str(e), REQUEUE_EXTERNAL
            )

        if created:
            logger.info(f"Created secrets for OpNode {ctx.namespace}/{ctx.name}: {created}")
        return ctx.succeed(CONDITION_SECRETS_READY, REASON_SECRETS_CREATED, "Secrets are ready")

    def apply_statefulset(self, ctx):
        network = ctx.values["network"]
        network_name = ctx.values["network_name"]
        resolved = ctx.values.get("sequencer")
        sequencer = resolved[2] if resolved is not None else None
        desired = build_node_statefulset(
            ctx.name, ctx.namespace, ctx.spec, network, network_name, sequencer
        )
        result = apply_desired(
            ctx,
            self.kube,
            desired,
            CONDITION_STATEFULSET_READY,
            REASON_STATEFULSET_RECONCILED,
            REASON_STATEFULSET_FAILED,
        )
        if result.ok:
            ctx.info.update(
                {
                    "nodeType": ctx.spec.nodeType,
                    "sequencerEndpoint": sequencer_endpoint(
                        ctx.spec, ctx.namespace, network_name, sequencer
                    ),
                    "engineConnected": self._pods_ready(ctx),
                }
            )
        return result

    def _pods_ready(self, ctx):
        try:
            statefulset = self.kube.read_child("StatefulSet", ctx.namespace, ctx.name)
        except ApiException as e:
            if e.status == 404:
                return False
            raise
        return ((statefulset.get("status") or {}).get("readyReplicas") or 0) >= 1

    def apply_service(self, ctx):
        desired = build_node_service(ctx.name, ctx.namespace, ctx.spec, ctx.values["network"])
        return apply_desired(
            ctx,
            self.kube,
            desired,
            CONDITION_SERVICE_READY,
            REASON_SERVICE_RECONCILED,
            REASON_SERVICE_FAILED,
        )

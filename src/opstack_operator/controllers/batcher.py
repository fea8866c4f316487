""" OpBatcher controller: submits L2 batches to L1.
"""

import logging

from opstack_operator.controllers.base import REQUEUE_SUCCESS, Reconciler
from opstack_operator.controllers.component import (
    component_steps,
    validation_result,
    workload_steps,
)
from opstack_operator.controllers.steps import (
    component_info,
    sequencer_endpoints,
    signer_reference_problems,
)
from opstack_operator.models.batcher import DA_TYPES, OpBatcherSpec
from opstack_operator.resources.deployment import BATCHER, build_batcher_deployment
from opstack_operator.utils.conditions import PHASE_RUNNING

logger = logging.getLogger(__name__)

FINALIZER = "opbatcher.optimism.io/finalizer"
KIND_BATCHER = "OpBatcher"

MIN_TARGET_L1_TX_SIZE = 1000


def validate_batcher_spec(spec):
    """ Static checks on an OpBatcher spec.

    Returns:
        list: Problems found, empty when the spec is valid
    """
    problems = signer_reference_problems(spec)

    batching = spec.batching
    if batching is not None:
        if batching.targetL1TxSize and batching.targetL1TxSize < MIN_TARGET_L1_TX_SIZE:
            problems.append(f"batching.targetL1TxSize must be at least {MIN_TARGET_L1_TX_SIZE}")
        if batching.subSafetyMargin < 1:
            problems.append("batching.subSafetyMargin must be at least 1")

    da = spec.dataAvailability
    if da is not None:
        if da.type not in DA_TYPES:
            problems.append(f"dataAvailability.type must be one of {', '.join(DA_TYPES)}")
        if da.maxBlobsPerTx < 1:
            problems.append("dataAvailability.maxBlobsPerTx must be at least 1")

    return problems


class BatcherController:
    """Reconciles OpBatcher resources."""

    kind = KIND_BATCHER
    finalizer = FINALIZER
    spec_model = OpBatcherSpec
    info_key = "batcherInfo"
    ready_phase = PHASE_RUNNING
    success_requeue = REQUEUE_SUCCESS

    def __init__(self, kube, rpc):
        self.kube = kube
        self.rpc = rpc
        self.reconciler = Reconciler(kube, self)

    def reconcile(self, name, namespace):
        return self.reconciler.reconcile(name, namespace)

    def steps(self):
        return component_steps(self, self.validate) + workload_steps(
            self, self.build_deployment, BATCHER
        )

    def cleanup(self, ctx):
        logger.info(f"Cleaned up OpBatcher {ctx.namespace}/{ctx.name}")

    def validate(self, ctx):
        return validation_result(ctx, validate_batcher_spec(ctx.spec))

    def build_deployment(self, ctx):
        l2_rpc_url, rollup_rpc_url = sequencer_endpoints(ctx)
        ctx.info.update(component_info(ctx, l2_rpc_url, rollup_rpc_url))
        return build_batcher_deployment(
            ctx.name, ctx.namespace, ctx.spec, ctx.values["network"], l2_rpc_url, rollup_rpc_url
        )

""" OpChallenger controller: plays fault dispute games on L1.
"""

import logging

from opstack_operator.controllers.base import (
    REQUEUE_DEPENDENCY_NOT_READY,
    REQUEUE_SUCCESS,
    Reconciler,
    Step,
)
from opstack_operator.controllers.component import (
    component_steps,
    validation_result,
    workload_steps,
)
from opstack_operator.controllers.steps import (
    component_info,
    require_contracts,
    sequencer_endpoints,
    signer_reference_problems,
)
from opstack_operator.models.challenger import TRACE_TYPES, OpChallengerSpec
from opstack_operator.resources.deployment import CHALLENGER, build_challenger_deployment
from opstack_operator.utils.conditions import (
    CONDITION_CONTRACTS_DISCOVERED,
    PHASE_RUNNING,
    REASON_DISCOVERY_FAILED,
)

logger = logging.getLogger(__name__)

FINALIZER = "opchallenger.optimism.io/finalizer"
KIND_CHALLENGER = "OpChallenger"


def validate_challenger_spec(spec):
    problems = signer_reference_problems(spec)
    if not spec.traceTypes:
        problems.append("traceTypes must list at least one trace type")
    unknown = [t for t in spec.traceTypes if t not in TRACE_TYPES]
    if unknown:
        problems.append(
            f"unknown trace types {', '.join(unknown)} (expected {', '.join(TRACE_TYPES)})"
        )
    if spec.maxConcurrency is not None and spec.maxConcurrency < 1:
        problems.append("maxConcurrency must be at least 1")
    return problems


class ChallengerController:
    """Reconciles OpChallenger resources."""

    kind = KIND_CHALLENGER
    finalizer = FINALIZER
    spec_model = OpChallengerSpec
    info_key = "challengerInfo"
    ready_phase = PHASE_RUNNING
    success_requeue = REQUEUE_SUCCESS

    def __init__(self, kube, rpc):
        self.kube = kube
        self.rpc = rpc
        self.reconciler = Reconciler(kube, self)

    def reconcile(self, name, namespace):
        return self.reconciler.reconcile(name, namespace)

    def steps(self):
        contracts = Step(
            "contracts",
            lambda ctx: require_contracts(ctx, ("disputeGameFactoryAddr",)),
            CONDITION_CONTRACTS_DISCOVERED,
            REASON_DISCOVERY_FAILED,
            REQUEUE_DEPENDENCY_NOT_READY,
        )
        return (
            component_steps(self, self.validate, network_steps=[contracts])
            + workload_steps(self, self.build_deployment, CHALLENGER)
        )

    def cleanup(self, ctx):
        logger.info(f"Cleaned up OpChallenger {ctx.namespace}/{ctx.name}")

    def validate(self, ctx):
        return validation_result(ctx, validate_challenger_spec(ctx.spec))

    def build_deployment(self, ctx):
        l2_rpc_url, rollup_rpc_url = sequencer_endpoints(ctx)
        ctx.info.update(component_info(ctx, l2_rpc_url, rollup_rpc_url))
        return build_challenger_deployment(
            ctx.name,
            ctx.namespace,
            ctx.spec,
            ctx.values["network"],
            l2_rpc_url,
            rollup_rpc_url,
            ctx.values["contracts"],
        )

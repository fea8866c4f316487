""" OpProposer controller: posts L2 output proposals to L1.
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
from opstack_operator.models.proposer import OpProposerSpec
from opstack_operator.resources.deployment import PROPOSER, build_proposer_deployment
from opstack_operator.utils.conditions import (
    CONDITION_CONTRACTS_DISCOVERED,
    PHASE_RUNNING,
    REASON_DISCOVERY_FAILED,
)
from opstack_operator.utils.units import parse_duration

logger = logging.getLogger(__name__)

FINALIZER = "opproposer.optimism.io/finalizer"
KIND_PROPOSER = "OpProposer"


def validate_proposer_spec(spec):
    problems = signer_reference_problems(spec)
    for field in ("proposalInterval", "pollInterval"):
        value = getattr(spec, field)
        try:
            seconds = parse_duration(value)
        except ValueError:
            seconds = None
        if not seconds or seconds <= 0:
            problems.append(f"{field} must be a positive duration, got {value!r}")
    if spec.gameType < 0:
        problems.append("gameType must not be negative")
    return problems


class ProposerController:
    """Reconciles OpProposer resources."""

    kind = KIND_PROPOSER
    finalizer = FINALIZER
    spec_model = OpProposerSpec
    info_key = "proposerInfo"
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
            self.check_contracts,
            CONDITION_CONTRACTS_DISCOVERED,
            REASON_DISCOVERY_FAILED,
            REQUEUE_DEPENDENCY_NOT_READY,
        )
        return (
            component_steps(self, self.validate, network_steps=[contracts])
            + workload_steps(self, self.build_deployment, PROPOSER)
        )

    def cleanup(self, ctx):
        logger.info(f"Cleaned up OpProposer {ctx.namespace}/{ctx.name}")

    def validate(self, ctx):
        return validation_result(ctx, validate_proposer_spec(ctx.spec))

    def check_contracts(self, ctx):
        if ctx.spec.useL2OutputOracle:
            return require_contracts(ctx, ("l2OutputOracleAddr",))
        return require_contracts(ctx, ("disputeGameFactoryAddr",))

    def build_deployment(self, ctx):
        l2_rpc_url, rollup_rpc_url = sequencer_endpoints(ctx)
        ctx.info.update(component_info(ctx, l2_rpc_url, rollup_rpc_url))
        return build_proposer_deployment(
            ctx.name,
            ctx.namespace,
            ctx.spec,
            ctx.values["network"],
            rollup_rpc_url,
            ctx.values["contracts"],
        )

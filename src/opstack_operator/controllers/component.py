""" Pipeline shared by the L1-signing components: batcher, proposer and
challenger.

Each of them validates its own spec, then resolves the network and the
sequencer, checks its signer key and L1 endpoint, and finally applies a
Deployment and a Service.
"""

from opstack_operator.controllers.base import (
    REQUEUE_APPLY,
    REQUEUE_DEPENDENCY_ERROR,
    REQUEUE_EXTERNAL,
    REQUEUE_VALIDATION,
    Step,
)
from opstack_operator.controllers.steps import (
    apply_desired,
    load_private_key,
    probe_l1,
    resolve_network,
    resolve_sequencer,
)
from opstack_operator.resources.deployment import build_component_service
from opstack_operator.utils.conditions import (
    CONDITION_CONFIGURATION_VALID,
    CONDITION_DEPLOYMENT_READY,
    CONDITION_L1_CONNECTED,
    CONDITION_NETWORK_READY,
    CONDITION_PRIVATE_KEY_LOADED,
    CONDITION_SEQUENCER_REFERENCE,
    CONDITION_SERVICE_READY,
    REASON_CONNECTION_FAILED,
    REASON_DEPLOYMENT_FAILED,
    REASON_DEPLOYMENT_RECONCILED,
    REASON_INVALID_CONFIGURATION,
    REASON_NETWORK_NOT_READY,
    REASON_SECRET_NOT_FOUND,
    REASON_SEQUENCER_NOT_FOUND,
    REASON_SERVICE_FAILED,
    REASON_SERVICE_RECONCILED,
    REASON_VALID_CONFIGURATION,
)


def validation_result(ctx, problems):
    """Turn a list of validation problems into the ConfigurationValid outcome."""
    if problems:
        return ctx.fail(
            CONDITION_CONFIGURATION_VALID,
            REASON_INVALID_CONFIGURATION,
            "; ".join(problems),
            REQUEUE_VALIDATION,
            fatal=True,
        )
    return ctx.succeed(
        CONDITION_CONFIGURATION_VALID,
        REASON_VALID_CONFIGURATION,
        f"{ctx.kind} configuration is valid",
    )


def component_steps(controller, validate, network_steps=()):
    """ The dependency and credential steps every L1-signing component runs,
    in order, after its own validation.

    Args:
        controller: The owning controller (kube and rpc are taken from it)
        validate: Kind-specific validation step function
        network_steps: Extra steps that only read the resolved network; they
            run right after it so they fail before any outbound call
    """
    kube = controller.kube
    return [
        Step(
            "validate",
            validate,
            CONDITION_CONFIGURATION_VALID,
            REASON_INVALID_CONFIGURATION,
            REQUEUE_VALIDATION,
        ),
        Step(
            "network",
            lambda ctx: resolve_network(ctx, kube, ctx.spec.optimismNetworkRef),
            CONDITION_NETWORK_READY,
            REASON_NETWORK_NOT_READY,
            REQUEUE_DEPENDENCY_ERROR,
        ),
        *network_steps,
        Step(
            "sequencer",
            lambda ctx: resolve_sequencer(ctx, kube, ctx.spec.sequencerRef),
            CONDITION_SEQUENCER_REFERENCE,
            REASON_SEQUENCER_NOT_FOUND,
            REQUEUE_DEPENDENCY_ERROR,
        ),
        Step(
            "private-key",
            lambda ctx: load_private_key(ctx, kube, ctx.spec.privateKey),
            CONDITION_PRIVATE_KEY_LOADED,
            REASON_SECRET_NOT_FOUND,
            REQUEUE_EXTERNAL,
        ),
        Step(
            "l1",
            lambda ctx: probe_l1(ctx, controller.rpc, ctx.values["network"]),
            CONDITION_L1_CONNECTED,
            REASON_CONNECTION_FAILED,
            REQUEUE_EXTERNAL,
        ),
    ]


def workload_steps(controller, build_deployment, kind):
    """Deployment then Service steps for an L1-signing component."""
    kube = controller.kube

    def apply_deployment(ctx):
        return apply_desired(
            ctx,
            kube,
            build_deployment(ctx),
            CONDITION_DEPLOYMENT_READY,
            REASON_DEPLOYMENT_RECONCILED,
            REASON_DEPLOYMENT_FAILED,
        )

    def apply_service(ctx):
        desired = build_component_service(
            kind, ctx.name, ctx.namespace, ctx.spec, ctx.values["network"]
        )
        return apply_desired(
            ctx,
            kube,
            desired,
            CONDITION_SERVICE_READY,
            REASON_SERVICE_RECONCILED,
            REASON_SERVICE_FAILED,
        )

    return [
        Step(
            "deployment",
            apply_deployment,
            CONDITION_DEPLOYMENT_READY,
            REASON_DEPLOYMENT_FAILED,
            REQUEUE_APPLY,
        ),
        Step(
            "service",
            apply_service,
            CONDITION_SERVICE_READY,
            REASON_SERVICE_FAILED,
            REQUEUE_APPLY,
        ),
    ]



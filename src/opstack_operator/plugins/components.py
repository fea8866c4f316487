"""Components plugin: op-batcher, op-proposer and op-challenger Deployments."""

import logging

from .base import PluginBase

logger = logging.getLogger(__name__)


class ComponentsPlugin(PluginBase):
    """Plugin reconciling OpBatcher, OpProposer and OpChallenger resources."""

    @property
    def name(self) -> str:
        return "components"

    @property
    def version(self) -> str:
        return "0.1.0"

    @property
    def description(self) -> str:
        return "Runs the L1-facing OP Stack services next to a sequencer"

    @property
    def models(self):
        from opstack_operator.models.batcher import OpBatcherSpec
        from opstack_operator.models.challenger import OpChallengerSpec
        from opstack_operator.models.proposer import OpProposerSpec

        return [OpBatcherSpec, OpProposerSpec, OpChallengerSpec]

    def _build_controllers(self, context):
        from opstack_operator.controllers.batcher import BatcherController
        from opstack_operator.controllers.challenger import ChallengerController
        from opstack_operator.controllers.proposer import ProposerController

        return [
            BatcherController(context.kube, context.rpc),
            ProposerController(context.kube, context.rpc),
            ChallengerController(context.kube, context.rpc),
        ]

    def register_handlers(self):
        from opstack_operator.handlers.reconcile_handler import register_child_watch

        super().register_handlers()
        register_child_watch("apps", "v1", "deployments", self.context.tracker)

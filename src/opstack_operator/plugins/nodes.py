"""Nodes plugin: OpNode StatefulSets and their credentials."""

import logging

from .base import PluginBase

logger = logging.getLogger(__name__)


class NodesPlugin(PluginBase):
    """Plugin reconciling OpNode resources."""

    @property
    def name(self) -> str:
        return "nodes"

    @property
    def version(self) -> str:
        return "0.1.0"

    @property
    def description(self) -> str:
        return "Runs op-geth and op-node pairs as sequencers or replicas"

    @property
    def models(self):
        from opstack_operator.models.node import OpNodeSpec

        return [OpNodeSpec]

    def _build_controllers(self, context):
        from opstack_operator.controllers.node import NodeController

        return [NodeController(context.kube)]

    def register_handlers(self):
        from opstack_operator.handlers.reconcile_handler import register_child_watch

        super().register_handlers()
        register_child_watch("apps", "v1", "statefulsets", self.context.tracker)

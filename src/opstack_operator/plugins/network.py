"""Network plugin: OptimismNetwork configuration and contract discovery."""

import logging

from .base import PluginBase

logger = logging.getLogger(__name__)


class NetworkPlugin(PluginBase):
    """Plugin reconciling OptimismNetwork resources."""

    @property
    def name(self) -> str:
        return "network"

    @property
    def version(self) -> str:
        return "0.1.0"

    @property
    def description(self) -> str:
        return "Validates L1/L2 connectivity and discovers contract addresses for OP Stack networks"

    @property
    def models(self):
        from opstack_operator.models.network import OptimismNetworkSpec

        return [OptimismNetworkSpec]

    def _build_controllers(self, context):
        from opstack_operator.controllers.network import NetworkController

        return [NetworkController(context.kube, context.rpc, context.discovery)]

    def _shutdown_plugin(self):
        if self.context is not None:
            self.context.discovery.clear()

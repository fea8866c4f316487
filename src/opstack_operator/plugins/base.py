"""Base plugin architecture for the OP Stack operator."""

from abc import ABC, abstractmethod
import logging

from opstack_operator.handlers.requeue import ReconcileGate, RequeueTracker

logger = logging.getLogger(__name__)


class OperatorContext:
    """ Shared clients and bookkeeping handed to every plugin.

    Args:
        kube: KubeClient
        rpc: RPCClient
        discovery: DiscoveryCache
    """

    def __init__(self, kube, rpc, discovery, tracker=None, gate=None):
        self.kube = kube
        self.rpc = rpc
        self.discovery = discovery
        self.tracker = tracker or RequeueTracker()
        self.gate = gate or ReconcileGate()

    @classmethod
    def from_environment(cls):
        """Build the default clients from the loaded kube config and env."""
        from opstack_operator.discovery import DiscoveryCache
        from opstack_operator.services.kube import KubeClient
        from opstack_operator.services.rpc import RPCClient

        rpc = RPCClient()
        return cls(kube=KubeClient(), rpc=rpc, discovery=DiscoveryCache(rpc))


class PluginBase(ABC):
    """Base class for all operator plugins."""

    def __init__(self):
        self._initialised = False
        self._models_registered = False
        self.context = None
        self.controllers = []

    @property
    @abstractmethod
    def name(self):
        """Unique name for this plugin."""
        pass

    @property
    @abstractmethod
    def version(self):
        pass

    @property
    @abstractmethod
    def description(self):
        """Human-readable description of what this plugin does."""
        pass

    @property
    @abstractmethod
    def models(self):
        """Return list of CRD models this plugin provides."""
        pass

    def initialise(self, context):
        """ Initialise the plugin. Called once during operator startup.

        Args:
            context: OperatorContext shared by all plugins

        Returns:
            bool: True if initialisation successful, False otherwise
        """
        if self._initialised:
            logger.warning(f"Plugin {self.name} already initialised")
            return True

        try:
            logger.info(f"Initialising plugin: {self.name} v{self.version}")

            if not self._models_registered:
                self._register_models()
                self._models_registered = True

            self.context = context
            self.controllers = self._build_controllers(context)

            self._initialised = True
            logger.info(f"Plugin {self.name} initialised with {len(self.controllers)} controllers")
            return True

        except Exception as e:
            logger.error(f"Failed to initialise plugin {self.name}: {e}")
            return False

    def _register_models(self):
        """Check this plugin's models are known to the CRD registry."""
        for model in self.models:
            if not hasattr(model, "_crd_group"):
                logger.warning(
                    f"Model {model.__name__} not properly decorated with @CRDRegistry.register"
                )
                continue

            logger.debug(f"Model {model.__name__} registered by plugin {self.name}")

    @abstractmethod
    def _build_controllers(self, context):
        """Return the controllers this plugin runs."""
        pass

    def shutdown(self):
        """Cleanup plugin resources. Called during operator shutdown."""
        if not self._initialised:
            return

        try:
            logger.info(f"Shutting down plugin: {self.name}")
            self._shutdown_plugin()
            self._initialised = False
        except Exception as e:
            logger.error(f"Error shutting down plugin {self.name}: {e}")

    def _shutdown_plugin(self):
        """Override this method for custom plugin shutdown logic."""
        pass

    def register_handlers(self):
        """ Register kopf handlers for every controller of this plugin.

        Child watches are added by plugins whose controllers own workloads.
        """
        from opstack_operator.handlers.reconcile_handler import register_controller

        for controller in self.controllers:
            register_controller(controller, self.context.tracker, self.context.gate)

    def get_health_status(self):
        return {
            "name": self.name,
            "version": self.version,
            "initialised": self._initialised,
            "models_count": len(self.models),
            "controllers": [controller.kind for controller in self.controllers],
            "status": "healthy" if self._initialised else "not_initialised",
        }

    def get_metadata(self):
        """Get plugin metadata."""
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "models": [model.__name__ for model in self.models],
        }

import kopf
import logging
import kubernetes
import os

from opstack_operator.crd.generator import OpStackCRDManager
from opstack_operator.plugins.base import OperatorContext
from opstack_operator.plugins.registry import PluginRegistry

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

plugin_registry = None


def load_kube_config():
    """Load in-cluster config, falling back to the local kubeconfig."""
    try:
        kubernetes.config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except kubernetes.config.ConfigException:
        try:
            kubernetes.config.load_kube_config()
            logger.info("Loaded local Kubernetes config")
        except Exception as e:
            logger.warning(f"Could not load Kubernetes config: {e}")


@kopf.on.startup()
def startup_fn(settings: kopf.OperatorSettings, **kwargs):
    """Configure the operator and wire up every plugin's controllers."""
    global plugin_registry

    logger.info("OP Stack operator is starting up...")

    load_kube_config()

    if should_manage_crds():
        try:
            crd_manager = OpStackCRDManager()
            if should_generate_crd_files():
                logger.info("Generating CRD files before applying to cluster")
                crd_manager.generate_all_crds(force=True)

            if crd_manager.apply_crds_to_cluster():
                logger.info("CRDs applied to cluster successfully")
            else:
                logger.warning("No CRDs were applied to cluster")
        except Exception as e:
            logger.error(f"Failed to apply CRDs to cluster: {e}")

    plugin_registry = PluginRegistry()

    discovered_count = plugin_registry.discover_plugins()
    if discovered_count == 0:
        logger.error("No plugins discovered - operator will have no functionality")
        raise RuntimeError("No plugins available")

    context = OperatorContext.from_environment()
    init_results = plugin_registry.initialise_all_plugins(context)
    if not any(init_results.values()):
        logger.error("No plugins initialised successfully")
        raise RuntimeError("Plugin initialisation failed")

    plugin_registry.register_all_handlers()

    settings.batching.worker_limit = int(os.getenv("WORKER_LIMIT", "5"))
    settings.posting.enabled = os.getenv("POSTING_ENABLED", "true").lower() == "true"
    settings.watching.server_timeout = int(os.getenv("SERVER_TIMEOUT", "60"))

    logger.info(f"Initialised plugins: {list(init_results.keys())}")
    logger.info(f"Worker limit: {settings.batching.worker_limit}")
    logger.info(f"Posting enabled: {settings.posting.enabled}")
    logger.info("OP Stack operator startup complete")


@kopf.on.cleanup()
def cleanup_fn(**kwargs):
    logger.info("OP Stack operator is shutting down...")

    if plugin_registry:
        plugin_registry.shutdown_all_plugins()

    logger.info("OP Stack operator shutdown complete")


def should_manage_crds() -> bool:
    """Determine if operator should manage CRDs directly."""
    return os.getenv("MANAGE_CRDS", "true").lower() == "true"


def should_generate_crd_files() -> bool:
    return os.getenv("GENERATE_CRD_FILES", "false").lower() == "true"


def main(namespaces=None, standalone=True):
    """ Run the operator until interrupted.

    Args:
        namespaces: Namespaces to watch (all when empty)
        standalone: Skip kopf peering
    """
    try:
        kopf.run(
            standalone=standalone,
            namespaces=namespaces or None,
            clusterwide=not namespaces,
        )
    except KeyboardInterrupt:
        logger.info("Operator stopped by user")
    except Exception as e:
        logger.error(f"Operator failed: {e}")
        raise


if __name__ == "__main__":
    main()

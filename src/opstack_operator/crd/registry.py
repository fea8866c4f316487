"""Registry of the operator's custom resource kinds."""

import importlib
import pkgutil
import logging

from .base import CRDStatus

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PACKAGES = ["opstack_operator.models"]


class CRDRegistry:
    """Process-wide map of registered kinds to their spec models.

    Entries are keyed by ``group/version/kind``; a second index by kind
    backs the lookups the Kubernetes client and the generator make.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._models = {}
            cls._instance._by_kind = {}
        return cls._instance

    @classmethod
    def register(
        cls,
        group,
        version,
        kind,
        plural=None,
        scope="Namespaced",
        short_names=None,
        status_model=None,
    ):
        """Decorator that records a spec model for a kind.

        Args:
            group: API group (e.g., 'optimism.optimism.io')
            version: API version (e.g., 'v1alpha1')
            kind: Kind name (e.g., 'OpNode')
            plural: Plural name (defaults to kind.lower() + 's')
            scope: 'Namespaced' or 'Cluster'
            short_names: kubectl short names (defaults to the first three letters)
            status_model: CRDStatus subclass describing the status subresource

        Raises:
            ValueError: if the kind is already registered under another model
        """

        def decorator(model_class):
            registry = cls()
            existing = registry._by_kind.get(kind)
            # Re-importing a module re-runs the decorator with a new class object
            if existing is not None and existing["model"].__qualname__ != model_class.__qualname__:
                raise ValueError(
                    f"Kind {kind} already registered by {existing['model'].__name__}"
                )

            plural_name = plural or f"{kind.lower()}s"
            model_class._crd_group = group
            model_class._crd_version = version
            model_class._crd_kind = kind
            model_class._crd_plural = plural_name

            model_info = {
                "model": model_class,
                "status_model": status_model or CRDStatus,
                "group": group,
                "version": version,
                "kind": kind,
                "plural": plural_name,
                "scope": scope,
                "singular": kind.lower(),
                "short_names": short_names or [kind.lower()[:3]],
            }
            key = f"{group}/{version}/{kind}"
            registry._models[key] = model_info
            registry._by_kind[kind] = model_info

            logger.debug(f"Registered {key} ({plural_name})")
            return model_class

        return decorator

    def discover_models(self, package_paths=None):
        """Import model packages so their register decorators run.

        Args:
            package_paths: Packages to scan, defaults to opstack_operator.models
        """
        for package_path in package_paths or DEFAULT_MODEL_PACKAGES:
            try:
                package = importlib.import_module(package_path)
            except ImportError as e:
                logger.warning(f"Could not import model package {package_path}: {e}")
                continue

            for _, module_name, _ in pkgutil.iter_modules(getattr(package, "__path__", [])):
                importlib.import_module(f"{package_path}.{module_name}")

        logger.debug(f"Known kinds: {sorted(self._by_kind)}")

    def get_all_models(self):
        """Get all registered entries keyed by group/version/kind."""
        return self._models.copy()

    def get_model_by_kind(self, kind):
        """Get the registration entry for a kind, or None."""
        return self._by_kind.get(kind)

""" Thin access layer over the Kubernetes API.

Everything is exchanged as plain dicts in API (camelCase) form so the
controllers and builders never depend on the client's model classes.
"""

import copy
import logging
import os

import kubernetes
from kubernetes.client.exceptions import ApiException

from opstack_operator import models  # noqa: F401  registers the CRD kinds
from opstack_operator.crd.registry import CRDRegistry
from opstack_operator.errors import ConflictError
from opstack_operator.models.common import API_GROUP, API_VERSION

logger = logging.getLogger(__name__)

# kind -> (api attribute, method suffix)
CHILD_APIS = {
    "ConfigMap": ("core", "namespaced_config_map"),
    "Secret": ("core", "namespaced_secret"),
    "Service": ("core", "namespaced_service"),
    "StatefulSet": ("apps", "namespaced_stateful_set"),
    "Deployment": ("apps", "namespaced_deployment"),
}


def get_update_attempts():
    """ Get the bound on optimistic-concurrency retries.
    """
    return int(os.getenv("STATUS_UPDATE_ATTEMPTS", "5"))


def is_not_found(error):
    return isinstance(error, ApiException) and error.status == 404


def is_conflict(error):
    return isinstance(error, ApiException) and error.status == 409


def update_with_retry(read, mutate, write, attempts=None):
    """ Read-modify-write with bounded retry on version conflicts.

    Args:
        read: Callable returning the latest object
        mutate: Callable taking a copy of the object and returning the
            object to write, or None when no write is needed
        write: Callable persisting the mutated object
        attempts: Maximum number of read-modify-write cycles
    """
    attempts = attempts or get_update_attempts()

    for attempt in range(1, attempts + 1):
        current = read()
        updated = mutate(copy.deepcopy(current))
        if updated is None:
            return current

        try:
            return write(updated)
        except ApiException as e:
            if e.status != 409:
                raise
            logger.debug(f"Conflict on write (attempt {attempt}/{attempts}), retrying")

    raise ConflictError(f"gave up after {attempts} conflicting updates")


def plural_for(kind):
    model_info = CRDRegistry().get_model_by_kind(kind)
    if model_info is None:
        raise KeyError(f"Unknown resource kind: {kind}")
    return model_info["plural"]


class KubeClient:
    """Dict-in, dict-out wrapper around the Kubernetes client APIs."""

    def __init__(self, custom=None, core=None, apps=None):
        self.custom = custom or kubernetes.client.CustomObjectsApi()
        self.core = core or kubernetes.client.CoreV1Api()
        self.apps = apps or kubernetes.client.AppsV1Api()
        self._serializer = kubernetes.client.ApiClient()

    def _to_dict(self, obj):
        if isinstance(obj, dict):
            return obj
        return self._serializer.sanitize_for_serialization(obj)

    # Custom resources

    def get_resource(self, kind, namespace, name):
        return self.custom.get_namespaced_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=plural_for(kind),
            name=name,
        )

    def replace_resource(self, kind, namespace, name, body):
        return self.custom.replace_namespaced_custom_object(
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=plural_for(kind),
            name=name,
            body=body,
        )

    def replace_status(self, kind, namespace, name, body):
        return self.custom.replace_namespaced_custom_object_status(
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=plural_for(kind),
            name=name,
            body=body,
        )

    # Built-in children

    def _child_call(self, verb, kind):
        api_attr, suffix = CHILD_APIS[kind]
        return getattr(getattr(self, api_attr), f"{verb}_{suffix}")

    def read_child(self, kind, namespace, name):
        return self._to_dict(self._child_call("read", kind)(name=name, namespace=namespace))

    def create_child(self, kind, namespace, body):
        return self._to_dict(self._child_call("create", kind)(namespace=namespace, body=body))

    def replace_child(self, kind, namespace, name, body):
        return self._to_dict(
            self._child_call("replace", kind)(name=name, namespace=namespace, body=body)
        )

""" Pod-level settings shared by the node and component builders.
"""

import copy

from opstack_operator.models.common import LoggingConfig, MetricsConfig

DEFAULT_POD_SECURITY = {
    "runAsNonRoot": True,
    "runAsUser": 1000,
    "fsGroup": 1000,
    "seccompProfile": {"type": "RuntimeDefault"},
}


def pod_security_context(shared_config):
    """ Pod security context, overridden field by field from sharedConfig.
    """
    context = copy.deepcopy(DEFAULT_POD_SECURITY)
    security = shared_config.security if shared_config else None
    if security is None:
        return context

    if security.runAsNonRoot is not None:
        context["runAsNonRoot"] = security.runAsNonRoot
    if security.runAsUser is not None:
        context["runAsUser"] = security.runAsUser
    if security.fsGroup is not None:
        context["fsGroup"] = security.fsGroup
    if security.seccompProfile is not None:
        context["seccompProfile"] = security.seccompProfile.model_dump(exclude_none=True)
    return context


def container_security_context():
    return {
        "runAsNonRoot": True,
        "runAsUser": 1000,
        "allowPrivilegeEscalation": False,
        "capabilities": {"drop": ["ALL"]},
        "seccompProfile": {"type": "RuntimeDefault"},
    }


def resource_requirements(explicit, shared_config, default):
    """ Pick container resources: explicit, then sharedConfig, then default.

    Args:
        explicit: ResourceRequirements set on the resource, or None
        shared_config: Network SharedConfig, or None
        default: Fallback dict with requests and limits
    """
    for candidate in (explicit, shared_config.resources if shared_config else None):
        if candidate is not None and (candidate.requests or candidate.limits):
            return candidate.model_dump()
    return {key: dict(value) for key, value in default.items()}


def logging_config(shared_config):
    if shared_config and shared_config.logging:
        return shared_config.logging
    return LoggingConfig()


def metrics_config(explicit, shared_config):
    if explicit is not None:
        return explicit
    if shared_config and shared_config.metrics:
        return shared_config.metrics
    return MetricsConfig()


def http_probe(path, port, initial_delay, period, failure_threshold=3, timeout=None):
    probe = {
        "httpGet": {"path": path, "port": port},
        "initialDelaySeconds": initial_delay,
        "periodSeconds": period,
        "failureThreshold": failure_threshold,
    }
    if timeout is not None:
        probe["timeoutSeconds"] = timeout
    return probe


def object_meta(name, namespace, labels, annotations=None):
    metadata = {"name": name, "namespace": namespace, "labels": dict(labels)}
    if annotations:
        metadata["annotations"] = dict(annotations)
    return metadata

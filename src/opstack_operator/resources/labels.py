"""Standard labels on child resources."""

PART_OF = "op-stack"
MANAGED_BY = "op-stack-operator"

NETWORK_LABEL = "optimism.io/network"
NODE_TYPE_LABEL = "optimism.io/node-type"


def component_labels(app, instance, component, network_name=None, extra=None):
    """ Labels shared by every object of one component instance.

    Args:
        app: app.kubernetes.io/name value (opnode, opbatcher, ...)
        instance: Owning resource name
        component: app.kubernetes.io/component value
        network_name: L2 network name, if known
        extra: Additional labels
    """
    labels = {
        "app.kubernetes.io/name": app,
        "app.kubernetes.io/instance": instance,
        "app.kubernetes.io/component": component,
        "app.kubernetes.io/part-of": PART_OF,
        "app.kubernetes.io/managed-by": MANAGED_BY,
    }
    if network_name:
        labels[NETWORK_LABEL] = network_name
    labels.update(extra or {})
    return labels


def selector_labels(app, instance):
    return {
        "app.kubernetes.io/name": app,
        "app.kubernetes.io/instance": instance,
    }

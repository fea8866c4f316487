""" Services in front of node and component workloads.
"""

from opstack_operator.resources.common import metrics_config, object_meta
from opstack_operator.resources.labels import selector_labels
from opstack_operator.resources.statefulset import (
    NODE_APP,
    geth_networking,
    node_labels,
    node_rpc_port,
)


def service_port(name, port, protocol="TCP", target_port=None):
    return {
        "name": name,
        "port": port,
        "targetPort": target_port or port,
        "protocol": protocol,
    }


def _custom_ports(service_config):
    return [
        service_port(p.name, p.port, p.protocol or "TCP", p.targetPort)
        for p in service_config.ports
    ]


def build_service(name, namespace, labels, selector, service_config, default_ports):
    """ Desired Service for a workload.

    Args:
        name: Service name (same as the owning resource)
        namespace: Namespace
        labels: Labels for the Service object
        selector: Pod selector
        service_config: ServiceConfig from the spec, or None
        default_ports: Ports used when the spec lists none
    """
    service_type = "ClusterIP"
    annotations = {}
    ports = default_ports
    if service_config is not None:
        service_type = service_config.type or service_type
        annotations = service_config.annotations
        if service_config.ports:
            ports = _custom_ports(service_config)

    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": object_meta(name, namespace, labels, annotations),
        "spec": {
            "type": service_type,
            "selector": dict(selector),
            "ports": ports,
        },
    }


def node_service_ports(node, metrics_port=7300):
    http, ws, _, geth_p2p = geth_networking(node)
    ports = []
    if http.enabled:
        ports.append(service_port("geth-http", http.port))
    if ws.enabled:
        ports.append(service_port("geth-ws", ws.port))
    if node.opGeth.networking is not None and node.opGeth.networking.p2p is not None:
        ports.append(service_port("geth-p2p", geth_p2p.port))
        ports.append(service_port("geth-p2p-udp", geth_p2p.port, "UDP"))

    rpc = node.opNode.rpc
    if rpc is None or rpc.enabled:
        ports.append(service_port("node-rpc", node_rpc_port(node)))

    p2p = node.opNode.p2p
    if p2p is not None and p2p.enabled:
        ports.append(service_port("node-p2p", p2p.listenPort))

    ports.append(service_port("metrics", metrics_port))
    return ports


def build_node_service(node_name, namespace, node, network):
    """ Desired Service for an OpNode.

    Args:
        node_name: OpNode resource name
        namespace: OpNode namespace
        node: OpNodeSpec
        network: OptimismNetworkSpec of the referenced network
    """
    return build_service(
        node_name,
        namespace,
        node_labels(node_name, node, network),
        selector_labels(NODE_APP, node_name),
        node.service,
        node_service_ports(node, metrics_config(None, network.sharedConfig).port),
    )

""" OpNode StatefulSet: an op-geth execution client paired with op-node.
"""

from opstack_operator.models.node import (
    AuthRPCConfig,
    HTTPConfig,
    StorageConfig,
    WSConfig,
    GethP2PConfig,
)
from opstack_operator.resources.common import (
    http_probe,
    logging_config,
    metrics_config,
    object_meta,
    pod_security_context,
    resource_requirements,
)
from opstack_operator.resources.configmap import rollup_config_map_name
from opstack_operator.resources.images import image_for
from opstack_operator.resources.labels import NODE_TYPE_LABEL, component_labels, selector_labels
from opstack_operator.services.credentials import JWT_SECRET_KEY, P2P_SECRET_KEY

NODE_APP = "opnode"
NODE_COMPONENT = "consensus-layer"

GETH_DATA_VOLUME = "geth-data"
JWT_MOUNT_PATH = "/secrets/jwt"
P2P_MOUNT_PATH = "/secrets/p2p"
CONFIG_MOUNT_PATH = "/config"

DEFAULT_NODE_RPC_PORT = 9545

DEFAULT_GETH_RESOURCES = {
    "requests": {"cpu": "2000m", "memory": "8Gi"},
    "limits": {"cpu": "8000m", "memory": "32Gi"},
}
DEFAULT_OP_NODE_RESOURCES = {
    "requests": {"cpu": "500m", "memory": "1Gi"},
    "limits": {"cpu": "2000m", "memory": "4Gi"},
}


def jwt_secret_name(node_name, node):
    """Secret holding the engine API JWT for a node."""
    jwt = node.opNode.engine.jwtSecret if node.opNode.engine else None
    if jwt is not None and jwt.secretRef is not None and jwt.secretRef.name:
        return jwt.secretRef.name
    return f"{node_name}-jwt"


def p2p_secret_name(node_name, node):
    """ Secret holding the op-node P2P identity key, or None when the node
    runs with an ephemeral identity.
    """
    p2p = node.opNode.p2p
    if p2p is None or p2p.privateKey is None:
        return None
    if p2p.privateKey.generate:
        return f"{node_name}-p2p"
    if p2p.privateKey.secretRef is not None:
        return p2p.privateKey.secretRef.name
    return None


def geth_networking(node):
    networking = node.opGeth.networking
    http = networking.http if networking and networking.http else HTTPConfig()
    ws = networking.ws if networking and networking.ws else WSConfig()
    authrpc = networking.authrpc if networking and networking.authrpc else AuthRPCConfig()
    p2p = networking.p2p if networking and networking.p2p else GethP2PConfig()
    return http, ws, authrpc, p2p


def sequencer_endpoint(node, node_namespace, network_name, sequencer=None):
    """ HTTP endpoint op-geth forwards transactions to.

    A sequencer forwards to itself; a replica uses l2RpcUrl, then its
    sequencerRef service, then the network's conventional sequencer service.

    Args:
        sequencer: Resolved OpNodeSpec behind sequencerRef, if known; its
            HTTP port is used instead of the default 8545
    """
    http, _, _, _ = geth_networking(node)
    if node.is_sequencer:
        return f"http://127.0.0.1:{http.port}"

    if node.l2RpcUrl:
        return node.l2RpcUrl

    ref = node.sequencerRef
    if ref is not None and ref.name:
        port = geth_networking(sequencer)[0].port if sequencer is not None else 8545
        namespace = ref.resolve_namespace(node_namespace)
        if namespace != node_namespace:
            return f"http://{ref.name}.{namespace}.svc.cluster.local:{port}"
        return f"http://{ref.name}:{port}"

    return f"http://{network_name}-sequencer:8545"


def geth_args(node, node_namespace, network, network_name, sequencer=None):
    geth = node.opGeth
    http, ws, authrpc, p2p = geth_networking(node)

    endpoint = sequencer_endpoint(node, node_namespace, network_name, sequencer)
    args = [
        f"--datadir={geth.dataDir}",
        f"--networkid={network.chainID}",
        f"--rollup.sequencerhttp={endpoint}",
        f"--syncmode={geth.syncMode or 'snap'}",
    ]
    if geth.gcMode:
        args.append(f"--gcmode={geth.gcMode}")
    if geth.stateScheme:
        args.append(f"--state.scheme={geth.stateScheme}")
    if geth.cache:
        args.append(f"--cache={geth.cache}")
    if geth.dbEngine:
        args.append(f"--db.engine={geth.dbEngine}")

    if http.enabled:
        args += ["--http", f"--http.addr={http.host}", f"--http.port={http.port}"]
        if http.apis:
            args.append(f"--http.api={','.join(http.apis)}")
        origins = (http.cors or {}).get("origins") or []
        if origins:
            args.append(f"--http.corsdomain={','.join(origins)}")

    if ws.enabled:
        args += ["--ws", f"--ws.addr={ws.host}", f"--ws.port={ws.port}"]
        if ws.apis:
            args.append(f"--ws.api={','.join(ws.apis)}")
        if ws.origins:
            args.append(f"--ws.origins={','.join(ws.origins)}")

    args += [
        f"--authrpc.addr={authrpc.host}",
        f"--authrpc.port={authrpc.port}",
        f"--authrpc.jwtsecret={JWT_MOUNT_PATH}/{JWT_SECRET_KEY}",
    ]

    args.append(f"--port={p2p.port}")
    if p2p.maxPeers is not None:
        args.append(f"--maxpeers={p2p.maxPeers}")
    if p2p.noDiscovery:
        args.append("--nodiscover")
    if p2p.netRestrict:
        args.append(f"--netrestrict={p2p.netRestrict}")

    if geth.rollup is not None:
        if geth.rollup.disableTxPoolGossip:
            args.append("--rollup.disabletxpoolgossip")
        if geth.rollup.computePendingBlock:
            args.append("--rollup.computependingblock")

    return args


def op_node_args(node_name, node, network):
    op_node = node.opNode
    _, _, authrpc, _ = geth_networking(node)

    args = [
        f"--l1={network.l1RpcUrl}",
        f"--l2=http://127.0.0.1:{authrpc.port}",
        f"--l2.jwt-secret={JWT_MOUNT_PATH}/{JWT_SECRET_KEY}",
        f"--rollup.config={CONFIG_MOUNT_PATH}/rollup.json",
    ]
    if network.l1BeaconUrl:
        args.append(f"--l1.beacon={network.l1BeaconUrl}")
    if network.networkName:
        args.append(f"--network={network.networkName}")
    if op_node.syncMode:
        args.append(f"--syncmode={op_node.syncMode}")

    rpc = op_node.rpc
    if rpc is None or rpc.enabled:
        args.append(f"--rpc.addr={(rpc.host if rpc else None) or '0.0.0.0'}")
        args.append(f"--rpc.port={node_rpc_port(node)}")
        if rpc is not None and rpc.enableAdmin:
            args.append("--rpc.enable-admin")

    p2p = op_node.p2p
    if p2p is not None and p2p.enabled:
        args.append(f"--p2p.listen.tcp={p2p.listenPort}")
        if p2p.discovery is not None and not p2p.discovery.enabled:
            args.append("--p2p.no-discovery")
        if p2p.discovery is not None and p2p.discovery.bootnodes:
            args.append(f"--p2p.bootnodes={','.join(p2p.discovery.bootnodes)}")
        for peer in p2p.static:
            args.append(f"--p2p.static={peer}")
        if p2p.peerScoring is not None and p2p.peerScoring.enabled:
            args.append("--p2p.scoring=light")
        if p2p_secret_name(node_name, node):
            args.append(f"--p2p.priv.path={P2P_MOUNT_PATH}/{P2P_SECRET_KEY}")

    sequencer = op_node.sequencer
    if sequencer is not None and sequencer.enabled:
        args.append("--sequencer.enabled")
        if sequencer.blockTime:
            args.append("--sequencer.l1-confs=4")

    log = logging_config(network.sharedConfig)
    args += [f"--log.level={log.level}", f"--log.format={log.format}"]

    metrics = metrics_config(None, network.sharedConfig)
    if metrics.enabled:
        args += [
            "--metrics.enabled",
            f"--metrics.addr={metrics.host}",
            f"--metrics.port={metrics.port}",
        ]

    return args


def _geth_container(node, node_namespace, network, network_name, sequencer=None):
    http, ws, authrpc, p2p = geth_networking(node)
    explicit = node.resources.opGeth if node.resources else None
    # geth answers JSON-RPC on /, so probe the HTTP port
    return {
        "name": "op-geth",
        "image": image_for("op-geth"),
        "imagePullPolicy": "IfNotPresent",
        "command": ["geth"],
        "args": geth_args(node, node_namespace, network, network_name, sequencer),
        "resources": resource_requirements(explicit, network.sharedConfig, DEFAULT_GETH_RESOURCES),
        "ports": [
            {"name": "http", "containerPort": http.port, "protocol": "TCP"},
            {"name": "ws", "containerPort": ws.port, "protocol": "TCP"},
            {"name": "authrpc", "containerPort": authrpc.port, "protocol": "TCP"},
            {"name": "p2p", "containerPort": p2p.port, "protocol": "TCP"},
        ],
        "volumeMounts": [
            {"name": GETH_DATA_VOLUME, "mountPath": node.opGeth.dataDir},
            {"name": "jwt-secret", "mountPath": JWT_MOUNT_PATH, "readOnly": True},
            {"name": "rollup-config", "mountPath": CONFIG_MOUNT_PATH, "readOnly": True},
        ],
        "livenessProbe": http_probe("/", http.port, 60, 30),
        "readinessProbe": http_probe("/", http.port, 30, 10),
    }


def node_rpc_port(node):
    rpc = node.opNode.rpc
    return (rpc.port if rpc else None) or DEFAULT_NODE_RPC_PORT


def _op_node_container(node_name, node, network):
    explicit = node.resources.opNode if node.resources else None
    rpc_port = node_rpc_port(node)
    p2p_port = node.opNode.p2p.listenPort if node.opNode.p2p else 9003
    metrics_port = metrics_config(None, network.sharedConfig).port
    mounts = [
        {"name": "jwt-secret", "mountPath": JWT_MOUNT_PATH, "readOnly": True},
        {"name": "rollup-config", "mountPath": CONFIG_MOUNT_PATH, "readOnly": True},
    ]
    if p2p_secret_name(node_name, node):
        mounts.append({"name": "p2p-key", "mountPath": P2P_MOUNT_PATH, "readOnly": True})

    return {
        "name": "op-node",
        "image": image_for("op-node"),
        "imagePullPolicy": "IfNotPresent",
        "command": ["op-node"],
        "args": op_node_args(node_name, node, network),
        "resources": resource_requirements(explicit, None, DEFAULT_OP_NODE_RESOURCES),
        "ports": [
            {"name": "rpc", "containerPort": rpc_port, "protocol": "TCP"},
            {"name": "p2p", "containerPort": p2p_port, "protocol": "TCP"},
            {"name": "metrics", "containerPort": metrics_port, "protocol": "TCP"},
        ],
        "volumeMounts": mounts,
        "livenessProbe": http_probe(
            "/healthz", rpc_port, 60, 30, failure_threshold=5, timeout=10
        ),
        "readinessProbe": http_probe("/healthz", rpc_port, 30, 10, timeout=5),
    }


def _volumes(node_name, node, network_name):
    jwt = node.opNode.engine.jwtSecret if node.opNode.engine else None
    jwt_key = JWT_SECRET_KEY
    if jwt is not None and jwt.secretRef is not None and jwt.secretRef.key:
        jwt_key = jwt.secretRef.key

    volumes = [
        {
            "name": "jwt-secret",
            "secret": {
                "secretName": jwt_secret_name(node_name, node),
                "items": [{"key": jwt_key, "path": JWT_SECRET_KEY}],
            },
        },
        {
            "name": "rollup-config",
            "configMap": {"name": rollup_config_map_name(network_name)},
        },
    ]

    p2p_secret = p2p_secret_name(node_name, node)
    if p2p_secret:
        p2p_ref = node.opNode.p2p.privateKey.secretRef
        p2p_key = p2p_ref.key if p2p_ref is not None and p2p_ref.key else P2P_SECRET_KEY
        volumes.append(
            {
                "name": "p2p-key",
                "secret": {
                    "secretName": p2p_secret,
                    "items": [{"key": p2p_key, "path": P2P_SECRET_KEY}],
                },
            }
        )
    return volumes


def _volume_claim_template(storage):
    spec = {
        "accessModes": [storage.accessMode],
        "resources": {"requests": {"storage": storage.size}},
    }
    if storage.storageClass:
        spec["storageClassName"] = storage.storageClass
    return {"metadata": {"name": GETH_DATA_VOLUME}, "spec": spec}


def node_labels(node_name, node, network):
    return component_labels(
        NODE_APP,
        node_name,
        NODE_COMPONENT,
        network.networkName,
        extra={NODE_TYPE_LABEL: node.nodeType} if node.nodeType else None,
    )


def build_node_statefulset(node_name, namespace, node, network, network_name, sequencer=None):
    """ Desired StatefulSet for an OpNode.

    Args:
        node_name: OpNode resource name
        namespace: OpNode namespace
        node: OpNodeSpec
        network: OptimismNetworkSpec of the referenced network
        network_name: OptimismNetwork resource name (owner of the rollup config map)
        sequencer: Resolved OpNodeSpec behind sequencerRef, for replicas
    """
    labels = node_labels(node_name, node, network)
    selector = selector_labels(NODE_APP, node_name)
    storage = node.opGeth.storage or StorageConfig()

    return {
        "apiVersion": "apps/v1",
        "kind": "StatefulSet",
        "metadata": object_meta(node_name, namespace, labels),
        "spec": {
            "replicas": 1,
            "serviceName": node_name,
            "selector": {"matchLabels": selector},
            "template": {
                "metadata": {"labels": labels},
                "spec": {
                    "securityContext": pod_security_context(network.sharedConfig),
                    "containers": [
                        _geth_container(node, namespace, network, network_name, sequencer),
                        _op_node_container(node_name, node, network),
                    ],
                    "volumes": _volumes(node_name, node, network_name),
                },
            },
            "volumeClaimTemplates": [_volume_claim_template(storage)],
        },
    }

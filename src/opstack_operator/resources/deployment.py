""" Deployments for the L1-facing components: batcher, proposer, challenger.

All three share one pod shape (a single container signing with a key read
from a mounted secret); only their arguments differ.
"""

from opstack_operator.models.batcher import (
    BatchingConfig,
    DataAvailabilityConfig,
    L1TransactionConfig,
    ThrottlingConfig,
)
from opstack_operator.resources.common import (
    container_security_context,
    http_probe,
    logging_config,
    metrics_config,
    object_meta,
    pod_security_context,
    resource_requirements,
)
from opstack_operator.resources.images import image_for
from opstack_operator.resources.labels import component_labels, selector_labels
from opstack_operator.resources.service import build_service, service_port
from opstack_operator.resources.statefulset import geth_networking, node_rpc_port

PRIVATE_KEY_MOUNT_PATH = "/secrets"
PRIVATE_KEY_FILE = "private-key"

DEFAULT_COMPONENT_RESOURCES = {
    "requests": {"cpu": "100m", "memory": "256Mi"},
    "limits": {"cpu": "1000m", "memory": "2Gi"},
}


class ComponentKind:
    """Static facts about one L1-facing component."""

    def __init__(self, app, component, container, default_rpc_port):
        self.app = app
        self.component = component
        self.container = container
        self.default_rpc_port = default_rpc_port


BATCHER = ComponentKind("opbatcher", "batcher", "op-batcher", 8548)
PROPOSER = ComponentKind("opproposer", "proposer", "op-proposer", 8560)
CHALLENGER = ComponentKind("opchallenger", "challenger", "op-challenger", 8561)


def sequencer_urls(sequencer_name, sequencer_namespace, sequencer):
    """ In-cluster execution and rollup RPC URLs of a sequencer OpNode.

    Args:
        sequencer_name: OpNode resource name
        sequencer_namespace: OpNode namespace
        sequencer: OpNodeSpec of the sequencer

    Returns:
        tuple: (l2 execution RPC URL, rollup node RPC URL)
    """
    http, _, _, _ = geth_networking(sequencer)
    host = f"{sequencer_name}.{sequencer_namespace}.svc.cluster.local"
    return f"http://{host}:{http.port}", f"http://{host}:{node_rpc_port(sequencer)}"


def rpc_settings(spec, kind):
    rpc = spec.rpc
    host = (rpc.host if rpc else None) or "127.0.0.1"
    port = (rpc.port if rpc else None) or kind.default_rpc_port
    return rpc, host, port


def _common_args(spec, kind, network):
    args = []
    rpc, host, port = rpc_settings(spec, kind)
    if rpc is None or rpc.enabled:
        args += [f"--rpc.addr={host}", f"--rpc.port={port}"]
        if rpc is not None and rpc.enableAdmin:
            args.append("--rpc.enable-admin")

    metrics = metrics_config(spec.metrics, network.sharedConfig)
    if metrics.enabled:
        args += [
            "--metrics.enabled",
            f"--metrics.addr={metrics.host}",
            f"--metrics.port={metrics.port}",
        ]

    log = logging_config(network.sharedConfig)
    args += [f"--log.level={log.level}", f"--log.format={log.format}"]
    if log.color:
        args.append("--log.color")
    return args


def batcher_args(batcher, network, l2_rpc_url, rollup_rpc_url):
    batching = batcher.batching or BatchingConfig()
    da = batcher.dataAvailability or DataAvailabilityConfig()
    throttling = batcher.throttling or ThrottlingConfig()
    txmgr = batcher.l1Transaction or L1TransactionConfig()

    args = [
        f"--l1-eth-rpc={network.l1RpcUrl}",
        f"--l2-eth-rpc={l2_rpc_url}",
        f"--rollup-rpc={rollup_rpc_url}",
        f"--private-key=file://{PRIVATE_KEY_MOUNT_PATH}/{PRIVATE_KEY_FILE}",
    ]

    if batching.maxChannelDuration:
        args.append(f"--max-channel-duration={batching.maxChannelDuration}")
    args += [
        f"--sub-safety-margin={batching.subSafetyMargin}",
        f"--target-l1-tx-size-bytes={batching.targetL1TxSize}",
        f"--target-num-frames={batching.targetNumFrames}",
    ]
    if batching.approxComprRatio:
        args.append(f"--approx-compr-ratio={batching.approxComprRatio}")

    args.append(f"--data-availability-type={da.type}")
    if da.type == "blobs":
        args.append(f"--max-blobs-per-tx={da.maxBlobsPerTx}")

    if not throttling.enabled:
        args.append("--throttling.enabled=false")
    args += [
        f"--max-pending-tx={throttling.maxPendingTx}",
        f"--backlog-safety-margin={throttling.backlogSafetyMargin}",
    ]

    if txmgr.feeLimitMultiplier:
        args.append(f"--txmgr.fee-limit-multiplier={txmgr.feeLimitMultiplier}")
    if txmgr.resubmissionTimeout:
        args.append(f"--txmgr.resubmission-timeout={txmgr.resubmissionTimeout}")
    args += [
        f"--txmgr.num-confirmations={txmgr.numConfirmations}",
        f"--txmgr.safe-abort-nonce-too-low-count={txmgr.safeAbortNonceTooLowCount}",
    ]

    return args + _common_args(batcher, BATCHER, network)


def proposer_args(proposer, network, rollup_rpc_url, contracts):
    """ op-proposer arguments.

    Args:
        contracts: discoveredContracts block from the network status
    """
    args = [
        f"--l1-eth-rpc={network.l1RpcUrl}",
        f"--rollup-rpc={rollup_rpc_url}",
        f"--private-key=file://{PRIVATE_KEY_MOUNT_PATH}/{PRIVATE_KEY_FILE}",
        f"--poll-interval={proposer.pollInterval}",
    ]

    if proposer.useL2OutputOracle:
        args.append(f"--l2oo-address={contracts['l2OutputOracleAddr']}")
    else:
        args += [
            f"--game-factory-address={contracts['disputeGameFactoryAddr']}",
            f"--game-type={proposer.gameType}",
            f"--proposal-interval={proposer.proposalInterval}",
        ]

    if proposer.allowNonFinalized:
        args.append("--allow-non-finalized")

    return args + _common_args(proposer, PROPOSER, network)


def challenger_args(challenger, network, l2_rpc_url, rollup_rpc_url, contracts):
    args = [
        f"--l1-eth-rpc={network.l1RpcUrl}",
        f"--l2-eth-rpc={l2_rpc_url}",
        f"--rollup-rpc={rollup_rpc_url}",
        f"--game-factory-address={contracts['disputeGameFactoryAddr']}",
        f"--trace-type={','.join(challenger.traceTypes)}",
        f"--datadir={challenger.dataDir}",
        f"--private-key=file://{PRIVATE_KEY_MOUNT_PATH}/{PRIVATE_KEY_FILE}",
    ]
    if network.l1BeaconUrl:
        args.append(f"--l1-beacon={network.l1BeaconUrl}")
    if challenger.maxConcurrency:
        args.append(f"--max-concurrency={challenger.maxConcurrency}")
    if challenger.selectiveClaimResolution:
        args.append("--selective-claim-resolution")

    return args + _common_args(challenger, CHALLENGER, network)


def component_labels_for(kind, name, network):
    return component_labels(kind.app, name, kind.component, network.networkName)


def build_component_deployment(kind, name, namespace, spec, network, args, extra_volumes=None):
    """ Desired Deployment for a batcher, proposer or challenger.

    Args:
        kind: BATCHER, PROPOSER or CHALLENGER
        name: Owning resource name
        namespace: Owning resource namespace
        spec: The component's parsed spec
        network: OptimismNetworkSpec of the referenced network
        args: Container arguments
        extra_volumes: (volume, mount) pairs added to the pod
    """
    labels = component_labels_for(kind, name, network)
    _, _, rpc_port = rpc_settings(spec, kind)
    metrics = metrics_config(spec.metrics, network.sharedConfig)
    secret_ref = spec.privateKey.secretRef

    volumes = [
        {
            "name": "private-key",
            "secret": {
                "secretName": secret_ref.name,
                "items": [{"key": secret_ref.key, "path": PRIVATE_KEY_FILE}],
            },
        }
    ]
    mounts = [{"name": "private-key", "mountPath": PRIVATE_KEY_MOUNT_PATH, "readOnly": True}]
    for volume, mount in extra_volumes or []:
        volumes.append(volume)
        mounts.append(mount)

    container = {
        "name": kind.container,
        "image": image_for(kind.container),
        "imagePullPolicy": "IfNotPresent",
        "args": args,
        "ports": [
            {"name": "rpc", "containerPort": rpc_port, "protocol": "TCP"},
            {"name": "metrics", "containerPort": metrics.port, "protocol": "TCP"},
        ],
        "env": [
            {"name": "POD_NAME", "valueFrom": {"fieldRef": {"fieldPath": "metadata.name"}}},
            {
                "name": "POD_NAMESPACE",
                "valueFrom": {"fieldRef": {"fieldPath": "metadata.namespace"}},
            },
        ],
        "resources": resource_requirements(
            spec.resources, network.sharedConfig, DEFAULT_COMPONENT_RESOURCES
        ),
        "securityContext": container_security_context(),
        "volumeMounts": mounts,
        "livenessProbe": http_probe("/healthz", "rpc", 30, 10),
        "readinessProbe": http_probe("/readyz", "rpc", 5, 5),
    }

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": object_meta(name, namespace, labels),
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": selector_labels(kind.app, name)},
            "template": {
                "metadata": {"labels": labels},
                "spec": {
                    "securityContext": pod_security_context(network.sharedConfig),
                    "containers": [container],
                    "volumes": volumes,
                },
            },
        },
    }


def build_component_service(kind, name, namespace, spec, network):
    """ Desired Service exposing a component's RPC and metrics ports.
    """
    _, _, rpc_port = rpc_settings(spec, kind)
    metrics = metrics_config(spec.metrics, network.sharedConfig)
    return build_service(
        name,
        namespace,
        component_labels_for(kind, name, network),
        selector_labels(kind.app, name),
        spec.service,
        [service_port("rpc", rpc_port), service_port("metrics", metrics.port)],
    )


def build_batcher_deployment(name, namespace, batcher, network, l2_rpc_url, rollup_rpc_url):
    args = batcher_args(batcher, network, l2_rpc_url, rollup_rpc_url)
    return build_component_deployment(BATCHER, name, namespace, batcher, network, args)


def build_proposer_deployment(name, namespace, proposer, network, rollup_rpc_url, contracts):
    args = proposer_args(proposer, network, rollup_rpc_url, contracts)
    return build_component_deployment(PROPOSER, name, namespace, proposer, network, args)


def build_challenger_deployment(
    name, namespace, challenger, network, l2_rpc_url, rollup_rpc_url, contracts
):
    """ Desired Deployment for an OpChallenger, with a scratch volume for
    its trace data.
    """
    args = challenger_args(challenger, network, l2_rpc_url, rollup_rpc_url, contracts)
    data_volume = (
        {"name": "challenger-data", "emptyDir": {}},
        {"name": "challenger-data", "mountPath": challenger.dataDir},
    )
    return build_component_deployment(
        CHALLENGER, name, namespace, challenger, network, args, extra_volumes=[data_volume]
    )

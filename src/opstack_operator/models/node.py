"""OpNode CRD model (op-node + op-geth pair)."""

from pydantic import Field
from typing import Dict, List, Optional

from opstack_operator.crd.registry import CRDRegistry
from opstack_operator.crd.base import CRDSpec, CRDStatus
from opstack_operator.models.common import (
    API_GROUP,
    API_VERSION,
    OptimismNetworkRef,
    RPCConfig,
    ResourceRequirements,
    SecretKeyRef,
    SequencerReference,
    ServiceConfig,
)

NODE_TYPE_SEQUENCER = "sequencer"
NODE_TYPE_REPLICA = "replica"


class P2PDiscoveryConfig(CRDSpec):
    enabled: bool = Field(default=False, description="Enable peer discovery")
    bootnodes: List[str] = Field(default_factory=list)


class P2PScoringConfig(CRDSpec):
    enabled: bool = Field(default=False)


class P2PConfig(CRDSpec):
    """op-node peer-to-peer settings."""

    enabled: bool = Field(default=True)
    listenPort: int = Field(default=9003)
    discovery: Optional[P2PDiscoveryConfig] = None
    static: List[str] = Field(default_factory=list)
    peerScoring: Optional[P2PScoringConfig] = None
    bandwidthLimit: Optional[str] = None
    privateKey: Optional[SecretKeyRef] = None


class SequencerConfig(CRDSpec):
    enabled: bool = Field(default=False)
    blockTime: Optional[str] = None
    maxTxPerBlock: Optional[int] = None


class EngineConfig(CRDSpec):
    jwtSecret: Optional[SecretKeyRef] = None
    endpoint: Optional[str] = None


class OpNodeConfig(CRDSpec):
    """op-node (consensus layer) settings."""

    syncMode: Optional[str] = Field(
        default=None, description="execution-layer or consensus-layer"
    )
    p2p: Optional[P2PConfig] = None
    rpc: Optional[RPCConfig] = None
    sequencer: Optional[SequencerConfig] = None
    engine: Optional[EngineConfig] = None


class StorageConfig(CRDSpec):
    size: str = Field(default="1Ti", description="Volume size")
    storageClass: Optional[str] = Field(default="fast-ssd")
    accessMode: str = Field(default="ReadWriteOnce")


class HTTPConfig(CRDSpec):
    enabled: bool = Field(default=True)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8545)
    apis: List[str] = Field(default_factory=lambda: ["web3", "eth", "net", "debug"])
    cors: Optional[Dict[str, List[str]]] = None


class WSConfig(CRDSpec):
    enabled: bool = Field(default=False)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8546)
    apis: List[str] = Field(default_factory=lambda: ["web3", "eth", "net"])
    origins: List[str] = Field(default_factory=list)


class AuthRPCConfig(CRDSpec):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8551)
    apis: List[str] = Field(default_factory=list)


class GethP2PConfig(CRDSpec):
    port: int = Field(default=30303)
    maxPeers: Optional[int] = None
    noDiscovery: bool = Field(default=False)
    netRestrict: Optional[str] = None
    static: List[str] = Field(default_factory=list)


class GethNetworkingConfig(CRDSpec):
    http: Optional[HTTPConfig] = None
    ws: Optional[WSConfig] = None
    authrpc: Optional[AuthRPCConfig] = None
    p2p: Optional[GethP2PConfig] = None


class TxPoolConfig(CRDSpec):
    locals: List[str] = Field(default_factory=list)
    noLocals: bool = Field(default=False)
    journal: Optional[str] = None
    journalRemotes: bool = Field(default=False)
    lifetime: Optional[str] = None
    priceBump: Optional[int] = None
    accountSlots: Optional[int] = None
    globalSlots: Optional[int] = None
    accountQueue: Optional[int] = None
    globalQueue: Optional[int] = None


class GethRollupConfig(CRDSpec):
    disableTxPoolGossip: bool = Field(default=False)
    computePendingBlock: bool = Field(default=False)


class OpGethConfig(CRDSpec):
    """op-geth (execution layer) settings."""

    network: Optional[str] = None
    dataDir: str = Field(default="/data/geth")
    storage: Optional[StorageConfig] = None
    syncMode: str = Field(default="snap", description="snap or full")
    gcMode: Optional[str] = Field(default=None, description="full or archive")
    stateScheme: Optional[str] = Field(default=None, description="path or hash")
    cache: Optional[int] = Field(default=None, description="Cache size in MB")
    dbEngine: Optional[str] = Field(default=None, description="pebble or leveldb")
    networking: Optional[GethNetworkingConfig] = None
    txpool: Optional[TxPoolConfig] = None
    rollup: Optional[GethRollupConfig] = None


class OpNodeResources(CRDSpec):
    opNode: Optional[ResourceRequirements] = None
    opGeth: Optional[ResourceRequirements] = None


class NodeStatus(CRDStatus):
    nodeInfo: Optional[Dict[str, object]] = None


@CRDRegistry.register(
    API_GROUP,
    API_VERSION,
    "OpNode",
    "opnodes",
    short_names=["opn"],
    status_model=NodeStatus,
)
class OpNodeSpec(CRDSpec):
    """OpNode CRD specification."""

    optimismNetworkRef: OptimismNetworkRef = Field(
        default_factory=OptimismNetworkRef,
        description="Network this node belongs to",
    )
    nodeType: str = Field(default="", description="sequencer or replica")
    sequencerRef: Optional[SequencerReference] = Field(
        default=None, description="Sequencer a replica follows"
    )
    l2RpcUrl: Optional[str] = Field(
        default=None, description="External sequencer HTTP endpoint"
    )
    opNode: OpNodeConfig = Field(default_factory=OpNodeConfig)
    opGeth: OpGethConfig = Field(default_factory=OpGethConfig)
    resources: Optional[OpNodeResources] = None
    service: Optional[ServiceConfig] = None

    @property
    def is_sequencer(self):
        return self.nodeType == NODE_TYPE_SEQUENCER

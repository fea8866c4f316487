"""OptimismNetwork CRD model."""

from pydantic import Field
from typing import Dict, Optional

from opstack_operator.crd.registry import CRDRegistry
from opstack_operator.crd.base import CRDSpec, CRDStatus
from opstack_operator.models.common import (
    API_GROUP,
    API_VERSION,
    SecretKeySelector,
    SharedConfig,
)


class ConfigSource(CRDSpec):
    """Where a configuration document (rollup.json, genesis.json) comes from."""

    inline: Optional[str] = Field(default=None, description="Inline document")
    configMapRef: Optional[SecretKeySelector] = Field(
        default=None, description="ConfigMap key holding the document"
    )
    secretRef: Optional[SecretKeySelector] = Field(
        default=None, description="Secret key holding the document"
    )
    autoDiscover: bool = Field(
        default=False, description="Generate the document from discovered values"
    )


class ContractAddressConfig(CRDSpec):
    """L1 contract addresses and how to discover them."""

    systemConfigAddr: Optional[str] = None
    l2OutputOracleAddr: Optional[str] = None
    disputeGameFactoryAddr: Optional[str] = None
    optimismPortalAddr: Optional[str] = None
    l1CrossDomainMessengerAddr: Optional[str] = None
    l1StandardBridgeAddr: Optional[str] = None
    discoveryMethod: str = Field(
        default="auto",
        description="auto, system-config, l2-predeploys, superchain-registry, well-known, manual",
    )
    cacheTimeout: Optional[str] = Field(
        default=None, description="How long discovered addresses stay valid (e.g. 24h)"
    )


class NetworkStatus(CRDStatus):
    networkInfo: Optional[Dict[str, object]] = None


@CRDRegistry.register(
    API_GROUP,
    API_VERSION,
    "OptimismNetwork",
    "optimismnetworks",
    short_names=["opnet"],
    status_model=NetworkStatus,
)
class OptimismNetworkSpec(CRDSpec):
    """OptimismNetwork CRD specification."""

    networkName: Optional[str] = Field(
        default=None, description="Well-known network name (e.g. op-sepolia)"
    )
    chainID: int = Field(default=0, description="L2 chain ID")
    l1ChainID: int = Field(default=0, description="L1 chain ID")
    l1RpcUrl: str = Field(default="", description="L1 execution RPC endpoint")
    l1BeaconUrl: Optional[str] = Field(default=None, description="L1 beacon endpoint")
    l1RpcTimeout: Optional[str] = Field(
        default=None, description="Timeout for L1 RPC calls (default 10s)"
    )
    l2RpcUrl: Optional[str] = Field(
        default=None, description="Existing L2 RPC endpoint used for discovery"
    )
    rollupConfig: Optional[ConfigSource] = None
    l2Genesis: Optional[ConfigSource] = None
    contractAddresses: Optional[ContractAddressConfig] = None
    sharedConfig: Optional[SharedConfig] = None

"""OpBatcher CRD model."""

from pydantic import Field
from typing import Dict, Optional

from opstack_operator.crd.registry import CRDRegistry
from opstack_operator.crd.base import CRDSpec, CRDStatus
from opstack_operator.models.common import (
    API_GROUP,
    API_VERSION,
    MetricsConfig,
    OptimismNetworkRef,
    RPCConfig,
    ResourceRequirements,
    SecretKeyRef,
    SequencerReference,
    ServiceConfig,
)

DA_TYPES = ("blobs", "calldata")


class BatchingConfig(CRDSpec):
    """Channel and frame settings for batch submission."""

    maxChannelDuration: Optional[str] = Field(default="10m")
    subSafetyMargin: int = Field(default=10)
    targetL1TxSize: int = Field(default=120000)
    targetNumFrames: int = Field(default=1)
    approxComprRatio: Optional[str] = Field(default="0.4")


class DataAvailabilityConfig(CRDSpec):
    type: str = Field(default="blobs", description="blobs or calldata")
    maxBlobsPerTx: int = Field(default=6)


class ThrottlingConfig(CRDSpec):
    enabled: bool = Field(default=True)
    maxPendingTx: int = Field(default=10)
    backlogSafetyMargin: int = Field(default=10)


class L1TransactionConfig(CRDSpec):
    feeLimitMultiplier: Optional[str] = Field(default="5")
    resubmissionTimeout: Optional[str] = Field(default="48s")
    numConfirmations: int = Field(default=10)
    safeAbortNonceTooLowCount: int = Field(default=3)


class BatcherStatus(CRDStatus):
    batcherInfo: Optional[Dict[str, str]] = None


@CRDRegistry.register(
    API_GROUP,
    API_VERSION,
    "OpBatcher",
    "opbatchers",
    short_names=["opb"],
    status_model=BatcherStatus,
)
class OpBatcherSpec(CRDSpec):
    """OpBatcher CRD specification."""

    optimismNetworkRef: OptimismNetworkRef = Field(default_factory=OptimismNetworkRef)
    sequencerRef: Optional[SequencerReference] = None
    privateKey: SecretKeyRef = Field(
        default_factory=SecretKeyRef, description="Secret key holding the signer key"
    )
    batching: Optional[BatchingConfig] = None
    dataAvailability: Optional[DataAvailabilityConfig] = None
    throttling: Optional[ThrottlingConfig] = None
    l1Transaction: Optional[L1TransactionConfig] = None
    rpc: Optional[RPCConfig] = None
    metrics: Optional[MetricsConfig] = None
    resources: Optional[ResourceRequirements] = None
    service: Optional[ServiceConfig] = None

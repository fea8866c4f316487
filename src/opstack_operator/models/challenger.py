"""OpChallenger CRD model."""

from pydantic import Field
from typing import Dict, List, Optional

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

TRACE_TYPES = ("cannon", "permissioned", "asterisc", "fast", "alphabet")


class ChallengerStatus(CRDStatus):
    challengerInfo: Optional[Dict[str, str]] = None


@CRDRegistry.register(
    API_GROUP,
    API_VERSION,
    "OpChallenger",
    "opchallengers",
    short_names=["opc"],
    status_model=ChallengerStatus,
)
class OpChallengerSpec(CRDSpec):
    """OpChallenger CRD specification."""

    optimismNetworkRef: OptimismNetworkRef = Field(default_factory=OptimismNetworkRef)
    sequencerRef: Optional[SequencerReference] = None
    privateKey: SecretKeyRef = Field(default_factory=SecretKeyRef)
    traceTypes: List[str] = Field(
        default_factory=lambda: ["cannon", "permissioned"],
        description="Dispute game trace types to play",
    )
    maxConcurrency: Optional[int] = None
    selectiveClaimResolution: bool = Field(default=False)
    dataDir: str = Field(default="/data")
    rpc: Optional[RPCConfig] = None
    metrics: Optional[MetricsConfig] = None
    resources: Optional[ResourceRequirements] = None
    service: Optional[ServiceConfig] = None

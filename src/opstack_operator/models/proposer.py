"""OpProposer CRD model."""

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


class ProposerStatus(CRDStatus):
    proposerInfo: Optional[Dict[str, str]] = None


@CRDRegistry.register(
    API_GROUP,
    API_VERSION,
    "OpProposer",
    "opproposers",
    short_names=["opp"],
    status_model=ProposerStatus,
)
class OpProposerSpec(CRDSpec):
    """OpProposer CRD specification."""

    optimismNetworkRef: OptimismNetworkRef = Field(default_factory=OptimismNetworkRef)
    sequencerRef: Optional[SequencerReference] = None
    privateKey: SecretKeyRef = Field(default_factory=SecretKeyRef)
    proposalInterval: str = Field(
        default="6h", description="Interval between dispute game proposals"
    )
    pollInterval: str = Field(default="12s", description="Rollup node poll interval")
    gameType: int = Field(default=0, description="Dispute game type to create")
    useL2OutputOracle: bool = Field(
        default=False, description="Propose to the legacy L2OutputOracle"
    )
    allowNonFinalized: bool = Field(default=False)
    rpc: Optional[RPCConfig] = None
    metrics: Optional[MetricsConfig] = None
    resources: Optional[ResourceRequirements] = None
    service: Optional[ServiceConfig] = None

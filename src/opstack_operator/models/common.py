"""Configuration blocks shared by several OP Stack CRDs."""

from pydantic import Field
from typing import Dict, List, Optional

from opstack_operator.crd.base import CRDSpec, CRDReference

API_GROUP = "optimism.optimism.io"
API_VERSION = "v1alpha1"


class LoggingConfig(CRDSpec):
    """Log settings passed to OP Stack binaries."""

    level: str = Field(default="info", description="trace, debug, info, warn, error")
    format: str = Field(default="logfmt", description="logfmt or json")
    color: bool = Field(default=False, description="Enable coloured output")


class MetricsConfig(CRDSpec):
    """Prometheus metrics endpoint."""

    enabled: bool = Field(default=True, description="Expose metrics")
    host: str = Field(default="0.0.0.0", description="Metrics listen address")
    port: int = Field(default=7300, description="Metrics port")
    path: str = Field(default="/metrics", description="Metrics path")


class ResourceRequirements(CRDSpec):
    """Container requests and limits as Kubernetes quantity strings."""

    requests: Dict[str, str] = Field(default_factory=dict)
    limits: Dict[str, str] = Field(default_factory=dict)


class SeccompProfile(CRDSpec):
    type: str = Field(default="RuntimeDefault")
    localhostProfile: Optional[str] = None


class SecurityConfig(CRDSpec):
    """Pod security context overrides."""

    runAsNonRoot: Optional[bool] = None
    runAsUser: Optional[int] = None
    fsGroup: Optional[int] = None
    seccompProfile: Optional[SeccompProfile] = None


class SharedConfig(CRDSpec):
    """Settings inherited by every component of a network."""

    logging: Optional[LoggingConfig] = None
    metrics: Optional[MetricsConfig] = None
    resources: Optional[ResourceRequirements] = None
    security: Optional[SecurityConfig] = None


class SecretKeySelector(CRDSpec):
    """A key inside a Secret or ConfigMap."""

    name: str = Field(default="", description="Object name")
    key: str = Field(default="", description="Key within the object")


class SecretKeyRef(CRDSpec):
    """Either an existing secret key or a request to generate one."""

    secretRef: Optional[SecretKeySelector] = None
    generate: bool = Field(default=False, description="Generate the secret if absent")


class RPCConfig(CRDSpec):
    """RPC server of a component."""

    enabled: bool = Field(default=True)
    host: Optional[str] = None
    port: Optional[int] = None
    enableAdmin: bool = Field(default=False)
    cors: Optional[Dict[str, List[str]]] = None


class ServicePortConfig(CRDSpec):
    name: str
    port: int
    targetPort: Optional[int] = None
    protocol: str = Field(default="TCP")


class ServiceConfig(CRDSpec):
    """Service exposed in front of a workload."""

    type: str = Field(default="ClusterIP", description="Service type")
    annotations: Dict[str, str] = Field(default_factory=dict)
    ports: List[ServicePortConfig] = Field(default_factory=list)


class OptimismNetworkRef(CRDReference):
    """Reference to an OptimismNetwork."""


class SequencerReference(CRDReference):
    """Reference to an OpNode running as sequencer."""



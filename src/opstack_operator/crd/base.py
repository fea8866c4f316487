"""Base classes for CRD specifications."""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class CRDCondition(BaseModel):
    """Status condition as written by the controllers."""

    type: str
    status: str  # True, False, Unknown
    reason: str
    message: str
    lastTransitionTime: Optional[datetime] = None
    observedGeneration: Optional[int] = None


class CRDStatus(BaseModel):
    """Base class for all CRD status objects.

    Kind-specific info blocks are declared on subclasses so they land in the
    generated status schema.
    """

    phase: Optional[str] = None
    conditions: List[CRDCondition] = Field(default_factory=list)
    observedGeneration: Optional[int] = None

    class Config:
        extra = "allow"


class CRDSpec(BaseModel):
    """Base class for all CRD spec objects."""

    class Config:
        extra = "forbid"
        validate_assignment = True


class CRDReference(CRDSpec):
    """Reference to another custom resource by name."""

    name: str = Field(default="", description="Name of the referenced resource")
    namespace: Optional[str] = Field(
        default=None,
        description="Namespace of the referenced resource (defaults to the referrer's)",
    )

    def resolve_namespace(self, default_namespace):
        return self.namespace or default_namespace

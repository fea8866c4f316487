"""CRD management system for the OP Stack operator."""

from .registry import CRDRegistry
from .base import CRDSpec, CRDStatus, CRDCondition, CRDReference

__all__ = ["CRDRegistry", "CRDSpec", "CRDStatus", "CRDCondition", "CRDReference"]

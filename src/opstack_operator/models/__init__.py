"""Pydantic models for all CRDs."""

# Import all models to ensure they're registered
from . import network
from . import node
from . import batcher
from . import proposer
from . import challenger

__all__ = ["network", "node", "batcher", "proposer", "challenger"]

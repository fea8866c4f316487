"""Plugin system for the OP Stack operator."""

from .base import OperatorContext, PluginBase
from .registry import PluginRegistry

__all__ = ["OperatorContext", "PluginBase", "PluginRegistry"]

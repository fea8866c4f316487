"""Kubernetes operator for OP Stack rollup networks."""

__version__ = "0.1.0"

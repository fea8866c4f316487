"""Cluster, RPC and credential services used by the controllers."""

from . import apply
from . import credentials
from . import kube
from . import resolver
from . import rpc

__all__ = ["apply", "credentials", "kube", "resolver", "rpc"]

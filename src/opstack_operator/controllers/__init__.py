"""Reconcile controllers, one per OP Stack kind."""

from opstack_operator.controllers.base import ReconcileResult, Reconciler, StepResult
from opstack_operator.controllers.batcher import BatcherController
from opstack_operator.controllers.challenger import ChallengerController
from opstack_operator.controllers.network import NetworkController
from opstack_operator.controllers.node import NodeController
from opstack_operator.controllers.proposer import ProposerController

__all__ = [
    "BatcherController",
    "ChallengerController",
    "NetworkController",
    "NodeController",
    "ProposerController",
    "ReconcileResult",
    "Reconciler",
    "StepResult",
]

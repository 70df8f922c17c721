"""Command graph: result vocabulary, node variants, correlator and engine."""

from papyrus.graph.command_graph import StatefulCommandGraph
from papyrus.graph.correlator import CommandOutcome, PendingReplyCorrelator, PendingRequest
from papyrus.graph.errors import GraphError, NodeWiringError, UnknownStateError
from papyrus.graph.nodes import (
    CommandNode,
    ConditionalCommandNode,
    DelegatingCommandNode,
    ExecuteCommandNode,
    FactoryCommandNode,
    ParallelCommandNode,
    SequentialCommandNode,
    StateChangeCommandNode,
)
from papyrus.graph.result import NodeResult, ParallelSuccessState, RetryPolicy
from papyrus.graph.validator import GraphValidator, ValidationResult

__all__ = [
    # Results
    "NodeResult",
    "RetryPolicy",
    "ParallelSuccessState",
    # Nodes
    "CommandNode",
    "ExecuteCommandNode",
    "SequentialCommandNode",
    "ParallelCommandNode",
    "ConditionalCommandNode",
    "DelegatingCommandNode",
    "FactoryCommandNode",
    "StateChangeCommandNode",
    # Correlation
    "PendingReplyCorrelator",
    "PendingRequest",
    "CommandOutcome",
    # Engine
    "StatefulCommandGraph",
    "GraphValidator",
    "ValidationResult",
    # Errors
    "GraphError",
    "UnknownStateError",
    "NodeWiringError",
]

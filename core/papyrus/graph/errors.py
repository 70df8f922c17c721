"""Exceptions for defects in a registered workflow.

Command failures are never raised; they are handled by each Execute node's
RetryPolicy. Everything here means the graph itself is wired wrong.
"""


class GraphError(Exception):
    """Base class for command graph misconfiguration."""


class UnknownStateError(GraphError, KeyError):
    """A state name was referenced that was never registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"State '{self.name}' is not registered"


class NodeWiringError(GraphError):
    """A node was attached somewhere it cannot live (shared or missing child)."""

"""Static checks for a registered command graph.

Catches wiring defects before the first tick instead of in the middle of a
workflow. Subtrees produced by FactoryCommandNode only exist at runtime and
are not inspected.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from papyrus.graph.nodes import FactoryCommandNode, StateChangeCommandNode

if TYPE_CHECKING:
    from papyrus.graph.command_graph import StatefulCommandGraph

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of validating a graph."""

    success: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def error(self) -> str:
        """Get combined error message."""
        return "; ".join(self.errors) if self.errors else ""


class GraphValidator:
    """
    Validates the state registry of a StatefulCommandGraph.

    Errors:
    - a StateChangeCommandNode targets a state that is not registered
    - one node instance appears under more than one state
    Warnings:
    - a state holds a factory, so part of its tree cannot be checked
    """

    def validate(self, graph: "StatefulCommandGraph") -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        registered = set(graph.states)
        owners: dict[int, str] = {}

        if not registered:
            errors.append("No states registered")

        for name in graph.states:
            for node in graph.get_state(name).walk():
                owner = owners.setdefault(id(node), name)
                if owner != name:
                    errors.append(f"{node!r} is shared by states '{owner}' and '{name}'")

                if isinstance(node, StateChangeCommandNode) and node.target not in registered:
                    errors.append(f"State '{name}' changes to unregistered state '{node.target}'")
                elif isinstance(node, FactoryCommandNode) and node.built is None:
                    warnings.append(f"State '{name}' builds part of its tree at runtime")

        for warning in warnings:
            logger.debug(warning)

        return ValidationResult(success=not errors, errors=errors, warnings=warnings)

"""
Command Nodes - The units a command graph is built from.

Every node exposes evaluate(graph, context) -> NodeResult and is called at
most once per tick by its parent. Nodes never block: waiting is expressed by
returning PENDING and being evaluated again on a later tick.

Variants:
- ExecuteCommandNode: issue one command and wait for its reply
- SequentialCommandNode: run children one after another
- ParallelCommandNode: run children side by side, aggregate per policy
- ConditionalCommandNode: branch on the result of a condition node
- DelegatingCommandNode: hand the tick to an arbitrary callback
- FactoryCommandNode: build the subtree lazily on first evaluation
- StateChangeCommandNode: switch the graph to another named state

Each node owns its children exclusively. Private progress (active child,
outstanding request, chosen branch) lives on the node instance and is
cleared by reset() when the owning state is entered again.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any

from papyrus.graph.correlator import CommandOutcome
from papyrus.graph.errors import NodeWiringError
from papyrus.graph.result import (
    Aggregator,
    NodeResult,
    ParallelSuccessState,
    RetryPolicy,
    get_aggregator,
)

if TYPE_CHECKING:
    from papyrus.graph.command_graph import StatefulCommandGraph

logger = logging.getLogger(__name__)

# (graph, context) -> NodeResult
DelegateCallback = Callable[["StatefulCommandGraph", Any], NodeResult]
# (graph, context) -> CommandNode
FactoryCallback = Callable[["StatefulCommandGraph", Any], "CommandNode"]


class CommandNode(ABC):
    """Base class for every node in a command tree."""

    def __init__(self):
        self._parent: CommandNode | None = None

    @abstractmethod
    def evaluate(self, graph: "StatefulCommandGraph", context: Any) -> NodeResult:
        """Advance this node by one tick and report where it stands."""

    def reset(self) -> None:
        """Discard private progress so the next evaluation starts fresh."""
        for child in self.children():
            child.reset()

    def children(self) -> list["CommandNode"]:
        return []

    def walk(self) -> Iterator["CommandNode"]:
        """Yield this node and every statically attached descendant."""
        yield self
        for child in self.children():
            yield from child.walk()

    @property
    def parent(self) -> "CommandNode | None":
        return self._parent

    def _adopt(self, child: "CommandNode") -> "CommandNode":
        if not isinstance(child, CommandNode):
            raise NodeWiringError(f"{child!r} is not a CommandNode")
        if child._parent is not None:
            raise NodeWiringError(f"{child!r} already belongs to {child._parent!r}")

        ancestor: CommandNode | None = self
        while ancestor is not None:
            if ancestor is child:
                raise NodeWiringError(f"Adding {child!r} under {self!r} would create a cycle")
            ancestor = ancestor._parent

        child._parent = self
        return child


class ExecuteCommandNode(CommandNode):
    """
    Issue a single command and wait for its asynchronous reply.

    The first evaluation issues the command through the graph and reports
    PENDING. Later evaluations stay PENDING until deliver_reply() records an
    outcome for the outstanding key. A failed outcome is translated by the
    retry policy. The terminal result is latched until reset().
    """

    def __init__(self, command: str, retry_policy: RetryPolicy = RetryPolicy.NO_RETRY):
        super().__init__()
        if not command:
            raise ValueError("ExecuteCommandNode requires a command")
        self.command = command
        self.retry_policy = RetryPolicy(retry_policy)
        self._key: str | None = None
        self._outcome: CommandOutcome | None = None
        self._result: NodeResult | None = None
        self.attempts = 0

    @property
    def pending_key(self) -> str | None:
        """Correlation key of the outstanding issuance, if any."""
        return self._key

    @property
    def outcome(self) -> CommandOutcome | None:
        """Last outcome delivered for this node."""
        return self._outcome

    def receive_outcome(self, key: str, outcome: CommandOutcome) -> bool:
        """Record a reply. Replies for anything but the outstanding key are ignored."""
        if key != self._key or self._result is not None:
            return False
        self._outcome = outcome
        return True

    def evaluate(self, graph: "StatefulCommandGraph", context: Any) -> NodeResult:
        if self._result is not None:
            return self._result

        if self._key is None:
            self._issue(graph)
            return NodeResult.PENDING

        if self._outcome is None:
            return NodeResult.PENDING

        if self._outcome.success:
            self._result = NodeResult.SUCCESS
        elif self.retry_policy == RetryPolicy.ALWAYS_RETRY:
            logger.info(f"Command failed, retrying (attempt {self.attempts + 1}): {self.command}")
            self._issue(graph)
            return NodeResult.PENDING
        elif self.retry_policy == RetryPolicy.IGNORE_ERRORS:
            logger.debug(f"Ignoring failure of command: {self.command}")
            self._result = NodeResult.SUCCESS
        else:
            logger.warning(f"Command failed: {self.command}")
            self._result = NodeResult.FAILED

        return self._result

    def reset(self) -> None:
        self._key = None
        self._outcome = None
        self._result = None
        self.attempts = 0

    def _issue(self, graph: "StatefulCommandGraph") -> None:
        self._outcome = None
        self.attempts += 1
        self._key = graph.issue(self.command, self)

    def __repr__(self) -> str:
        return f"Execute({self.command!r}, {self.retry_policy.value})"


class SequentialCommandNode(CommandNode):
    """
    Run children in declaration order.

    Only the active child is evaluated. A SUCCESS advances to the next child
    within the same tick; a FAILED resets the index and is reported upward.
    Once every child has succeeded the node keeps reporting SUCCESS without
    re-running any of them.
    """

    def __init__(self, *children: CommandNode):
        super().__init__()
        self._children: list[CommandNode] = []
        self._index = 0
        self._completed = False
        for child in children:
            self.add(child)

    def add(self, child: CommandNode) -> "SequentialCommandNode":
        self._children.append(self._adopt(child))
        return self

    @property
    def index(self) -> int:
        return self._index

    def children(self) -> list[CommandNode]:
        return list(self._children)

    def evaluate(self, graph: "StatefulCommandGraph", context: Any) -> NodeResult:
        if self._completed:
            return NodeResult.SUCCESS

        while self._index < len(self._children):
            result = self._children[self._index].evaluate(graph, context)
            if result == NodeResult.PENDING:
                return NodeResult.PENDING
            if result == NodeResult.FAILED:
                self._index = 0
                return NodeResult.FAILED
            self._index += 1

        self._completed = True
        return NodeResult.SUCCESS

    def reset(self) -> None:
        self._index = 0
        self._completed = False
        super().reset()

    def __repr__(self) -> str:
        return f"Sequential({len(self._children)} children)"


class ParallelCommandNode(CommandNode):
    """
    Evaluate every non-terminal child each tick.

    Children that reached SUCCESS or FAILED are not evaluated again; their
    result is cached. After each child the aggregation policy is consulted,
    and a terminal answer stops the remaining children for that tick and is
    latched as this node's result.
    """

    def __init__(
        self,
        policy: ParallelSuccessState | Aggregator = ParallelSuccessState.ALL_SUCCESS,
        *children: CommandNode,
    ):
        super().__init__()
        self.policy = policy
        self._aggregate = get_aggregator(policy)
        self._children: list[CommandNode] = []
        self._cached: list[NodeResult | None] = []
        self._result: NodeResult | None = None
        for child in children:
            self.add(child)

    def add(self, child: CommandNode) -> "ParallelCommandNode":
        self._children.append(self._adopt(child))
        self._cached.append(None)
        return self

    def children(self) -> list[CommandNode]:
        return list(self._children)

    def evaluate(self, graph: "StatefulCommandGraph", context: Any) -> NodeResult:
        if self._result is not None:
            return self._result
        if not self._children:
            raise NodeWiringError("ParallelCommandNode has no children")

        results: list[NodeResult | None] = list(self._cached)
        for i, child in enumerate(self._children):
            if self._cached[i] is None:
                result = child.evaluate(graph, context)
                if result.is_terminal:
                    self._cached[i] = result
                results[i] = result

            aggregate = self._aggregate(results)
            if aggregate.is_terminal:
                self._result = aggregate
                return aggregate

        return NodeResult.PENDING

    def reset(self) -> None:
        self._cached = [None] * len(self._children)
        self._result = None
        super().reset()

    def __repr__(self) -> str:
        policy = getattr(self.policy, "value", getattr(self.policy, "__name__", "custom"))
        return f"Parallel({len(self._children)} children, {policy})"


class ConditionalCommandNode(CommandNode):
    """
    Branch on a condition node.

    The condition is evaluated each tick while PENDING. Its first terminal
    result picks a branch permanently; that branch is evaluated in the same
    tick and on every later tick. A missing branch reports the condition's
    own result.

    Example:
        ConditionalCommandNode(ExecuteCommandNode("testfor @p", RetryPolicy.NO_RETRY))
            .on_success(StateChangeCommandNode("found"))
            .on_failed(StateChangeCommandNode("search"))
    """

    def __init__(
        self,
        condition: CommandNode,
        on_success: CommandNode | None = None,
        on_failed: CommandNode | None = None,
    ):
        super().__init__()
        if condition is None:
            raise NodeWiringError("ConditionalCommandNode requires a condition")
        self._condition = self._adopt(condition)
        self._success_branch: CommandNode | None = None
        self._failed_branch: CommandNode | None = None
        self._decided: NodeResult | None = None
        if on_success is not None:
            self.on_success(on_success)
        if on_failed is not None:
            self.on_failed(on_failed)

    def on_success(self, node: CommandNode) -> "ConditionalCommandNode":
        if self._success_branch is not None:
            raise NodeWiringError("on_success branch already set")
        self._success_branch = self._adopt(node)
        return self

    def on_failed(self, node: CommandNode) -> "ConditionalCommandNode":
        if self._failed_branch is not None:
            raise NodeWiringError("on_failed branch already set")
        self._failed_branch = self._adopt(node)
        return self

    @property
    def decided(self) -> NodeResult | None:
        """The condition's terminal result once a branch has been chosen."""
        return self._decided

    def children(self) -> list[CommandNode]:
        return [
            node
            for node in (self._condition, self._success_branch, self._failed_branch)
            if node is not None
        ]

    def evaluate(self, graph: "StatefulCommandGraph", context: Any) -> NodeResult:
        if self._decided is None:
            result = self._condition.evaluate(graph, context)
            if result == NodeResult.PENDING:
                return NodeResult.PENDING
            self._decided = result

        if self._decided == NodeResult.SUCCESS:
            branch = self._success_branch
        else:
            branch = self._failed_branch

        if branch is None:
            return self._decided
        return branch.evaluate(graph, context)

    def reset(self) -> None:
        self._decided = None
        super().reset()

    def __repr__(self) -> str:
        return f"Conditional({self._condition!r})"


class DelegatingCommandNode(CommandNode):
    """
    Hand each tick to a callback(graph, context) -> NodeResult.

    The escape hatch for logic that does not decompose into the other
    variants, such as scanning the agent context for work to do.
    """

    def __init__(self, callback: DelegateCallback):
        super().__init__()
        if not callable(callback):
            raise TypeError("DelegatingCommandNode callback must be callable")
        self.callback = callback

    def evaluate(self, graph: "StatefulCommandGraph", context: Any) -> NodeResult:
        result = self.callback(graph, context)
        if not isinstance(result, NodeResult):
            raise TypeError(
                f"Delegating callback {_callable_name(self.callback)} returned {result!r}, "
                "expected a NodeResult"
            )
        return result

    def __repr__(self) -> str:
        return f"Delegating({_callable_name(self.callback)})"


class FactoryCommandNode(CommandNode):
    """
    Build a subtree on first evaluation and delegate to it from then on.

    Lets the shape of a subtree (a command string, say) depend on runtime
    state that is only known once the owning state is entered.
    """

    def __init__(self, callback: FactoryCallback):
        super().__init__()
        if not callable(callback):
            raise TypeError("FactoryCommandNode callback must be callable")
        self.callback = callback
        self._built: CommandNode | None = None

    @property
    def built(self) -> CommandNode | None:
        return self._built

    def children(self) -> list[CommandNode]:
        return [self._built] if self._built is not None else []

    def evaluate(self, graph: "StatefulCommandGraph", context: Any) -> NodeResult:
        if self._built is None:
            node = self.callback(graph, context)
            if not isinstance(node, CommandNode):
                raise TypeError(
                    f"Factory callback {_callable_name(self.callback)} returned {node!r}, "
                    "expected a CommandNode"
                )
            self._built = self._adopt(node)
            logger.debug(f"Factory built {node!r}")
        return self._built.evaluate(graph, context)

    def reset(self) -> None:
        if self._built is not None:
            self._built._parent = None
        self._built = None

    def __repr__(self) -> str:
        return f"Factory({_callable_name(self.callback)})"


class StateChangeCommandNode(CommandNode):
    """Ask the graph to switch to another named state, then report SUCCESS."""

    def __init__(self, target: str):
        super().__init__()
        if not target:
            raise ValueError("StateChangeCommandNode requires a target state")
        self.target = target

    def evaluate(self, graph: "StatefulCommandGraph", context: Any) -> NodeResult:
        graph.set_state(self.target)
        return NodeResult.SUCCESS

    def __repr__(self) -> str:
        return f"StateChange({self.target!r})"


def _callable_name(func: Callable) -> str:
    return getattr(func, "__qualname__", None) or getattr(func, "__name__", None) or repr(func)

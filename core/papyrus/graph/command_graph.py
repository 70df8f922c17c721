"""
Stateful Command Graph - Named states, the active tree, and the tick driver.

The graph:
1. Holds one root node per state name
2. Tracks the current state and evaluates its root once per tick()
3. Issues commands for Execute nodes and registers them with the correlator
4. Routes asynchronous replies from deliver_reply() to the waiting node

tick(), set_state() and deliver_reply() are serialised by one re-entrant
lock, so a reply arriving from a transport thread is applied between ticks
and is first seen by the next tick.
"""

import logging
import threading
from typing import TYPE_CHECKING, Any

from papyrus.graph.correlator import PendingReplyCorrelator
from papyrus.graph.errors import GraphError, NodeWiringError, UnknownStateError
from papyrus.graph.nodes import CommandNode, ExecuteCommandNode
from papyrus.graph.result import NodeResult
from papyrus.observability import set_log_context

if TYPE_CHECKING:
    from papyrus.graph.validator import ValidationResult
    from papyrus.runtime.transport import CommandTransport

logger = logging.getLogger(__name__)


class StatefulCommandGraph:
    """
    Drives a named-state workflow of command nodes.

    Example:
        graph = StatefulCommandGraph(transport)
        graph.add_state(
            "scan",
            SequentialCommandNode(
                ExecuteCommandNode("testfor @s", RetryPolicy.NO_RETRY),
                StateChangeCommandNode("done"),
            ),
        )
        graph.add_state("done", DelegatingCommandNode(lambda g, ctx: NodeResult.SUCCESS))
        graph.set_state("scan")

        graph.tick(context)                  # issues "testfor @s"
        graph.deliver_reply(key, True)       # reply arrives out-of-band
        graph.tick(context)                  # switches to "done"
    """

    def __init__(
        self,
        transport: "CommandTransport",
        correlator: PendingReplyCorrelator | None = None,
    ):
        self._transport = transport
        self._correlator = correlator or PendingReplyCorrelator()
        self._states: dict[str, CommandNode] = {}
        self._current: str | None = None
        self._requested: str | None = None
        self._ticking = False
        self._lock = threading.RLock()
        self.tick_count = 0

    # === REGISTRY ===

    def add_state(self, name: str, node: CommandNode) -> "StatefulCommandGraph":
        """
        Register the root node for a state.

        Raises:
            NodeWiringError: If node is not a root (already attached elsewhere)
        """
        if not isinstance(node, CommandNode):
            raise NodeWiringError(f"State '{name}' root {node!r} is not a CommandNode")
        if node.parent is not None:
            raise NodeWiringError(f"State '{name}' root {node!r} already has a parent")
        for other, root in self._states.items():
            if root is node and other != name:
                raise NodeWiringError(f"State '{name}' shares its root with state '{other}'")

        if name in self._states:
            logger.warning(f"Overwriting registered state: {name}")
        self._states[name] = node
        logger.debug(f"Registered state: {name} -> {node!r}")
        return self

    def get_state(self, name: str) -> CommandNode:
        try:
            return self._states[name]
        except KeyError:
            raise UnknownStateError(name) from None

    @property
    def states(self) -> list[str]:
        return list(self._states)

    @property
    def current_state(self) -> str | None:
        return self._current

    @property
    def active_node(self) -> CommandNode | None:
        if self._current is None:
            return None
        return self._states[self._current]

    @property
    def correlator(self) -> PendingReplyCorrelator:
        return self._correlator

    # === STATE TRANSITIONS ===

    def set_state(self, name: str) -> None:
        """
        Make name the active state, abandoning all in-flight work.

        Called during a tick (by a StateChangeCommandNode), the switch takes
        effect once the current root evaluation returns.

        Raises:
            UnknownStateError: If name was never registered
        """
        with self._lock:
            if name not in self._states:
                raise UnknownStateError(name)
            if self._ticking:
                self._requested = name
                return
            self._enter(name)

    def _enter(self, name: str) -> None:
        previous = self._current
        orphaned = self._correlator.clear()
        self._states[name].reset()
        self._current = name
        set_log_context(state=name)
        if orphaned:
            logger.debug(f"Abandoned {orphaned} pending request(s) from state '{previous}'")
        logger.info(f"State changed: {previous} -> {name}")

    # === DRIVER ENTRY POINTS ===

    def tick(self, context: Any = None) -> NodeResult:
        """
        Evaluate the active root once.

        The root's result is returned for observation only; the graph does
        not react to it.

        Raises:
            GraphError: If no state has been set
        """
        with self._lock:
            if self._current is None:
                raise GraphError("Cannot tick before a state has been set")
            set_log_context(state=self._current)

            self._ticking = True
            try:
                result = self._states[self._current].evaluate(self, context)
            finally:
                self._ticking = False
                requested, self._requested = self._requested, None

            self.tick_count += 1
            if requested is not None:
                self._enter(requested)
            return result

    def deliver_reply(self, key: str, success: bool, payload: Any = None) -> bool:
        """
        Route a command reply to the node awaiting it.

        Returns:
            True if a node received it, False if it was an orphan and was dropped
        """
        with self._lock:
            delivered = self._correlator.resolve(key, success, payload)
            if delivered:
                logger.debug(
                    f"Reply delivered for key {key} (success={success})",
                    extra={"event": "reply_delivered", "command_key": key},
                )
            return delivered

    def issue(self, command: str, node: ExecuteCommandNode) -> str:
        """Send command through the transport and register node as its waiter."""
        key = self._transport.issue(command)
        self._correlator.register(key, node, command)
        logger.debug(
            f"Issued command [{key}]: {command}",
            extra={"event": "command_issued", "command_key": key},
        )
        return key

    def validate(self) -> "ValidationResult":
        """Check that every reachable state change targets a registered state."""
        from papyrus.graph.validator import GraphValidator

        return GraphValidator().validate(self)

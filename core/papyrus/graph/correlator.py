"""
Pending-Reply Correlator - Matches asynchronous command replies to waiting nodes.

Replies arrive on a separate channel, possibly out of issuance order or not
at all. The correlator keeps one entry per outstanding issuance, keyed by
the correlation key the transport assigned, and hands each reply to the
Execute node that is waiting for it.

No timeouts are enforced here: an entry with no reply stays until it is
resolved or the graph discards it on a state change.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from papyrus.graph.nodes import ExecuteCommandNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOutcome:
    """Result of one command issuance as reported by the transport."""

    key: str
    success: bool
    payload: Any = None


@dataclass
class PendingRequest:
    """An issued command that has not been answered yet."""

    key: str
    node: "ExecuteCommandNode"
    command: str = ""


class PendingReplyCorrelator:
    """
    Map correlation keys to the Execute nodes awaiting them.

    Example:
        correlator = PendingReplyCorrelator()
        correlator.register("key-1", node)
        correlator.resolve("key-1", success=True)   # node sees the outcome next tick
        correlator.resolve("key-1", success=True)   # orphan, dropped
    """

    def __init__(self):
        self._pending: dict[str, PendingRequest] = {}
        self._orphaned = 0

    def register(self, key: str, node: "ExecuteCommandNode", command: str = "") -> PendingRequest:
        """
        Record that node is waiting for the reply to key.

        Raises:
            ValueError: If key is already outstanding
        """
        if key in self._pending:
            raise ValueError(f"Correlation key '{key}' is already pending")
        request = PendingRequest(key=key, node=node, command=command)
        self._pending[key] = request
        return request

    def resolve(self, key: str, success: bool, payload: Any = None) -> bool:
        """
        Deliver a reply to the node waiting on key.

        Returns:
            True if a waiting node received the outcome, False for an orphaned reply
        """
        request = self._pending.pop(key, None)
        if request is None:
            self._orphaned += 1
            logger.debug(
                f"Dropping orphaned reply for key {key}",
                extra={"event": "orphaned_reply", "command_key": key},
            )
            return False

        outcome = CommandOutcome(key=key, success=success, payload=payload)
        return request.node.receive_outcome(key, outcome)

    def discard(self, key: str) -> bool:
        """Forget a single outstanding key."""
        return self._pending.pop(key, None) is not None

    def clear(self) -> int:
        """Forget every outstanding key; their replies become orphans."""
        count = len(self._pending)
        self._pending.clear()
        return count

    def get(self, key: str) -> PendingRequest | None:
        return self._pending.get(key)

    @property
    def orphaned_count(self) -> int:
        """Number of replies dropped because nobody was waiting."""
        return self._orphaned

    def __contains__(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

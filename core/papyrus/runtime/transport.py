"""
Command Transport - The boundary between the graph and the remote session.

The graph only needs issue(command) -> correlation key. Replies come back
separately through StatefulCommandGraph.deliver_reply().

LoopbackTransport answers its own commands, for dry runs and tests.
"""

import logging
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class CommandTransport(Protocol):
    """Anything that can send a command and name its future reply."""

    def issue(self, command: str) -> str:
        """Send command and return the correlation key its reply will carry."""
        ...


@dataclass
class IssuedCommand:
    key: str
    command: str


# command -> True/False for a reply, None to never reply
Responder = Callable[[str], bool | None]
# (key, success, payload) -> Any; StatefulCommandGraph.deliver_reply fits
ReplySink = Callable[[str, bool, Any], Any]


class LoopbackTransport:
    """
    In-process transport that queues every command and replies on drain().

    Example:
        transport = LoopbackTransport(responder=lambda cmd: not cmd.startswith("testfor"))
        graph = StatefulCommandGraph(transport)
        ...
        graph.tick(ctx)
        transport.drain(graph.deliver_reply)
    """

    def __init__(self, responder: Responder | None = None):
        self._responder = responder or (lambda command: True)
        self._queue: deque[IssuedCommand] = deque()
        self.issued: list[IssuedCommand] = []

    def issue(self, command: str) -> str:
        issued = IssuedCommand(key=uuid.uuid4().hex, command=command)
        self.issued.append(issued)
        self._queue.append(issued)
        return issued.key

    @property
    def commands(self) -> list[str]:
        """Every command issued so far, in order."""
        return [issued.command for issued in self.issued]

    def pending(self) -> list[IssuedCommand]:
        return list(self._queue)

    def drain(self, sink: ReplySink) -> int:
        """Reply to every queued command. Returns the number of replies sent."""
        sent = 0
        while self._queue:
            issued = self._queue.popleft()
            success = self._responder(issued.command)
            if success is None:
                logger.debug(f"Loopback withholding reply for: {issued.command}")
                continue
            sink(issued.key, success, {"command": issued.command})
            sent += 1
        return sent

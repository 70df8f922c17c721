"""Runtime: transport boundary, event bus, broadcast server and tick driver."""

from papyrus.runtime.event_bus import BotEvent, EventBus, EventType
from papyrus.runtime.transport import CommandTransport, IssuedCommand, LoopbackTransport
from papyrus.runtime.broadcast_server import BroadcastServer, BroadcastServerConfig  # noqa: I001
from papyrus.runtime.bot_runtime import BotRuntime

__all__ = [
    "EventBus",
    "BotEvent",
    "EventType",
    "CommandTransport",
    "IssuedCommand",
    "LoopbackTransport",
    "BroadcastServer",
    "BroadcastServerConfig",
    "BotRuntime",
]

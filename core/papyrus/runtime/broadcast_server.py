"""
Broadcast Server - Republishes player positions and chat over WebSocket.

Subscribes to PLAYER_POSITION and PLAYER_CHAT on the EventBus and pushes
each one as JSON to every connected client. New clients first receive the
last known position of every roster player.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import websockets
from websockets.exceptions import ConnectionClosed

from papyrus.bot.messages import PlayerChatMessage, PlayerPositionMessage
from papyrus.config import BotConfig, get_broadcast_host, get_broadcast_port
from papyrus.runtime.event_bus import BotEvent, EventBus, EventType

logger = logging.getLogger(__name__)

Snapshot = Callable[[], list[PlayerPositionMessage]]


@dataclass
class BroadcastServerConfig:
    """Configuration for the broadcast WebSocket server; defaults come from the config file."""

    host: str = field(default_factory=get_broadcast_host)
    port: int = field(default_factory=get_broadcast_port)

    @classmethod
    def from_bot_config(cls, config: BotConfig) -> "BroadcastServerConfig":
        return cls(host=config.broadcast_host, port=config.broadcast_port)


class BroadcastServer:
    """
    Embedded WebSocket server fed by the EventBus.

    Lifecycle:
        server = BroadcastServer(event_bus, snapshot=bot.position_snapshot)
        await server.start()
        # ... bot running ...
        await server.stop()
    """

    def __init__(
        self,
        event_bus: EventBus,
        snapshot: Snapshot | None = None,
        config: BroadcastServerConfig | None = None,
    ):
        self._event_bus = event_bus
        self._snapshot = snapshot or (lambda: [])
        self._config = config or BroadcastServerConfig()
        self._clients: set = set()
        self._server = None
        self._subscription: str | None = None

    async def start(self) -> None:
        """Start listening and subscribe to the bus. No-op if already running."""
        if self._server is not None:
            return

        self._server = await websockets.serve(
            self._handle_client,
            self._config.host,
            self._config.port,
        )
        self._subscription = self._event_bus.subscribe(
            [EventType.PLAYER_POSITION, EventType.PLAYER_CHAT],
            self._on_event,
        )
        logger.info(f"WebSocket server is listening on {self._config.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the server and drop all clients."""
        if self._subscription is not None:
            self._event_bus.unsubscribe(self._subscription)
            self._subscription = None
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            self._clients.clear()
            logger.info("WebSocket server stopped")

    async def broadcast(self, message: str) -> int:
        """Send message to every client. Returns how many received it."""
        delivered = 0
        for client in list(self._clients):
            try:
                await client.send(message)
                delivered += 1
            except ConnectionClosed:
                self._clients.discard(client)
            except Exception as e:
                logger.error(f"Failed to send to {client.remote_address}: {e}")
        return delivered

    async def _on_event(self, event: BotEvent) -> None:
        if event.type == EventType.PLAYER_POSITION:
            message = PlayerPositionMessage(
                player_name=event.data["player_name"],
                x=event.data["x"],
                z=event.data["z"],
            )
        else:
            message = PlayerChatMessage(
                player_name=event.data["player_name"],
                message=event.data["message"],
            )
        await self.broadcast(message.to_json())

    async def _handle_client(self, websocket) -> None:
        logger.info(f"WebSocket connection opened from {websocket.remote_address}")
        self._clients.add(websocket)
        try:
            for message in self._snapshot():
                await websocket.send(message.to_json())
            async for raw in websocket:
                logger.debug(f"Got WebSocket message: {raw}")
        except ConnectionClosed:
            pass
        finally:
            self._clients.discard(websocket)
            logger.debug("Got WebSocket close")

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def port(self) -> int | None:
        """Return the actual listening port (useful when configured with port=0)."""
        if self._server is not None and self._server.sockets:
            return list(self._server.sockets)[0].getsockname()[1]
        return None

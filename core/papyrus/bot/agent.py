"""
Papyrus Bot - Connects session traffic to the command graph.

The transport decodes session packets and calls the on_* handlers here.
Handlers keep BotState current, republish positions and chat on the event
bus, and hand command replies to the graph. An external driver (BotRuntime)
calls update() on a fixed cadence to tick the graph.

All handlers and update() are expected to run on one event loop; the graph
additionally serialises ticks and replies with its own lock.
"""

import logging
import time
from collections.abc import Callable

from papyrus.bot.messages import (
    CommandOutput,
    PlayerListAction,
    PlayerListEntry,
    PlayerPositionMessage,
    Vector3,
)
from papyrus.bot.state import BotState
from papyrus.bot.workflow import WAITING, build_papyrus_graph
from papyrus.config import BotConfig
from papyrus.graph import NodeResult, StatefulCommandGraph
from papyrus.runtime.event_bus import EventBus
from papyrus.runtime.transport import CommandTransport

logger = logging.getLogger(__name__)


class PapyrusBot:
    """
    Scouting bot that keeps player positions fresh by teleporting to them.

    Example:
        bot = PapyrusBot(transport, event_bus=bus)
        await bot.on_player_list(PlayerListAction.ADD, entries)
        await bot.on_respawn()
        bot.update()                       # ticks the graph
        bot.on_command_output(output)      # reply frame from the session
    """

    def __init__(
        self,
        transport: CommandTransport,
        event_bus: EventBus | None = None,
        config: BotConfig | None = None,
        clock: Callable[[], float] = time.time,
        graph: StatefulCommandGraph | None = None,
    ):
        self.config = config or BotConfig()
        self.state = BotState()
        self.event_bus = event_bus or EventBus()
        self.graph = graph or build_papyrus_graph(transport, self.config)
        self.update_graph = False
        self._clock = clock

    @property
    def name(self) -> str:
        return self.config.bot_name

    def now(self) -> float:
        return self._clock()

    # === SESSION HANDLERS ===

    async def on_player_list(self, action: PlayerListAction, entries: list[PlayerListEntry]) -> None:
        """Apply a roster add/remove."""
        for entry in entries:
            if action == PlayerListAction.ADD:
                if entry.name == self.name:
                    self.state.bot_uuid = entry.uuid
                    self.state.seen_bot = True
                self.state.players[entry.uuid] = entry
                await self.event_bus.emit_roster_change(self.name, True, entry.uuid, entry.name)
            else:
                removed = self.state.players.pop(entry.uuid, None)
                if removed is None:
                    continue
                await self.event_bus.emit_roster_change(self.name, False, entry.uuid, removed.name)
                if entry.uuid == self.state.focused_player:
                    logger.info(f"Focused player {removed.name} left, waiting for another")
                    self.state.focused_player = None
                    self.graph.set_state(WAITING)

    async def on_add_player(self, runtime_id: int, uuid: str, position: Vector3) -> None:
        """A player entity came into view."""
        self.state.runtime_lookup[runtime_id] = uuid
        await self._observe_position(uuid, position)

    async def on_move_player(self, runtime_id: int, position: Vector3) -> bool:
        """A known player entity moved. Returns False if the entity is not a roster player."""
        uuid = self.state.runtime_lookup.get(runtime_id)
        if uuid is None or uuid not in self.state.players:
            return False
        await self._observe_position(uuid, position)
        return True

    async def on_text(self, source_name: str, message: str) -> None:
        await self.event_bus.emit_player_chat(self.name, source_name, message)

    async def on_respawn(self) -> None:
        """The bot is in the game; start driving the workflow."""
        logger.info(f"{self.name} bot is now connected and in the game")
        self.update_graph = True
        await self.event_bus.emit_bot_in_game(self.name)

    async def on_disconnect(self, reason: str) -> None:
        logger.info(f"Disconnected, reason: {reason}")
        self.update_graph = False
        await self.event_bus.emit_bot_disconnected(self.name, reason)

    def on_command_output(self, output: CommandOutput) -> bool:
        """Forward a command reply to the graph. Returns True if a node was waiting for it."""
        if not self.update_graph:
            return False
        return self.graph.deliver_reply(output.origin_id, output.success, output.messages)

    # === DRIVER ===

    def update(self) -> NodeResult | None:
        """Tick the graph once, if the bot is in game and has seen itself in the roster."""
        if not self.state.seen_bot or not self.update_graph:
            return None
        return self.graph.tick(self)

    def position_snapshot(self) -> list[PlayerPositionMessage]:
        """Last known position of every roster player."""
        return [
            PlayerPositionMessage(player_name=entry.name, x=position.x, z=position.z)
            for uuid, entry in self.state.players.items()
            if (position := self.state.known_positions.get(uuid)) is not None
        ]

    async def _observe_position(self, uuid: str, position: Vector3) -> None:
        self.state.record_position(uuid, position, self.now())

        name = self.state.player_name(uuid)
        if name is not None:
            await self.event_bus.emit_player_position(
                self.name, name, position.x, position.y, position.z
            )

        if uuid == self.state.focused_player:
            self.graph.set_state(WAITING)

"""
Scouting workflow - Keeps every player's last known position fresh.

States:
    init
        Put the bot in creative mode and make it invisible (in parallel),
        create the dimension scoreboard, then start waiting.
    waiting-for-out-of-date-player
        Poll the roster until some player's position is missing or stale,
        focus that player, then check which dimension they are in.
    check-dimension
        Use bedrock detection at y=0 and y=127 to score the player's
        dimension. Overworld players get a teleport; anyone else is recorded
        at the origin and the bot goes back to waiting.
    teleport
        Teleport the bot to the focused player. The position update that
        follows returns the workflow to waiting (see PapyrusBot).

Callbacks receive the PapyrusBot as context and touch its state only
through that argument.
"""

import logging
from typing import TYPE_CHECKING

from papyrus.bot.messages import Vector3
from papyrus.config import BotConfig
from papyrus.graph import (
    CommandNode,
    ConditionalCommandNode,
    DelegatingCommandNode,
    ExecuteCommandNode,
    FactoryCommandNode,
    NodeResult,
    ParallelCommandNode,
    ParallelSuccessState,
    RetryPolicy,
    SequentialCommandNode,
    StateChangeCommandNode,
    StatefulCommandGraph,
)

if TYPE_CHECKING:
    from papyrus.bot.agent import PapyrusBot
    from papyrus.runtime.transport import CommandTransport

logger = logging.getLogger(__name__)

INIT = "init"
WAITING = "waiting-for-out-of-date-player"
CHECK_DIMENSION = "check-dimension"
TELEPORT = "teleport"


def _detect_bedrock(name: str, y: int, then: str) -> str:
    return f'execute "{name}" ~ ~ ~ detect 0 {y} 0 bedrock 0 {then}'


def find_out_of_date_player(graph: StatefulCommandGraph, bot: "PapyrusBot") -> NodeResult:
    """Focus the first player whose position is missing or stale."""
    entry = bot.state.stale_player(bot.now(), bot.config.stale_after_seconds)
    if entry is None:
        return NodeResult.PENDING

    if entry.uuid in bot.state.last_updated:
        logger.debug(f"Need to update known location of {entry.name}, location too old")
    else:
        logger.debug(f"Need to update known location of {entry.name}, no known location")
    bot.state.focused_player = entry.uuid
    return NodeResult.SUCCESS


def mark_focused_player_unreachable(graph: StatefulCommandGraph, bot: "PapyrusBot") -> NodeResult:
    """Record the focused player at the origin; they are outside the overworld."""
    uuid = bot.state.focused_player
    if uuid is not None:
        bot.state.record_position(uuid, Vector3(), bot.now())
    return NodeResult.SUCCESS


def build_check_dimension(graph: StatefulCommandGraph, bot: "PapyrusBot") -> CommandNode:
    entry = bot.state.focused_entry()
    if entry is None:
        logger.warning("Focused player left before their dimension was checked")
        return StateChangeCommandNode(WAITING)

    name = entry.name
    return SequentialCommandNode(
        ExecuteCommandNode(
            _detect_bedrock(name, 0, f'/scoreboard players set "{name}" dimension 0'),
            RetryPolicy.ALWAYS_RETRY,
        ),
        ExecuteCommandNode(
            _detect_bedrock(name, 127, f'/scoreboard players set "{name}" dimension 1'),
            RetryPolicy.IGNORE_ERRORS,
        ),
        ConditionalCommandNode(
            ExecuteCommandNode(f'scoreboard players test "{name}" dimension 0 0', RetryPolicy.NO_RETRY)
        )
        .on_success(StateChangeCommandNode(TELEPORT))
        .on_failed(
            SequentialCommandNode(
                DelegatingCommandNode(mark_focused_player_unreachable),
                StateChangeCommandNode(WAITING),
            )
        ),
    )


def build_teleport(graph: StatefulCommandGraph, bot: "PapyrusBot") -> CommandNode:
    entry = bot.state.focused_entry()
    if entry is None:
        logger.warning("Focused player left before the teleport")
        return StateChangeCommandNode(WAITING)

    logger.info(f"Requesting teleport to {entry.name}...")
    return SequentialCommandNode(
        ExecuteCommandNode(
            _detect_bedrock(entry.name, 0, f"tp {bot.config.bot_name} ~ ~ ~"),
            RetryPolicy.ALWAYS_RETRY,
        )
    )


def build_papyrus_graph(
    transport: "CommandTransport",
    config: BotConfig | None = None,
) -> StatefulCommandGraph:
    """Register the scouting states and start in init."""
    config = config or BotConfig()
    graph = StatefulCommandGraph(transport)

    graph.add_state(
        INIT,
        SequentialCommandNode()
        .add(
            ParallelCommandNode(ParallelSuccessState.ALL_SUCCESS)
            .add(ExecuteCommandNode("gamemode creative @s", RetryPolicy.ALWAYS_RETRY))
            .add(ExecuteCommandNode("effect @s invisibility 99999 255 true", RetryPolicy.ALWAYS_RETRY))
        )
        .add(
            ExecuteCommandNode(
                'scoreboard objectives add dimension dummy "Current Dimension"',
                RetryPolicy.IGNORE_ERRORS,
            )
        )
        .add(StateChangeCommandNode(WAITING)),
    )
    graph.add_state(
        WAITING,
        ConditionalCommandNode(DelegatingCommandNode(find_out_of_date_player)).on_success(
            StateChangeCommandNode(CHECK_DIMENSION)
        ),
    )
    graph.add_state(CHECK_DIMENSION, FactoryCommandNode(build_check_dimension))
    graph.add_state(TELEPORT, FactoryCommandNode(build_teleport))

    graph.set_state(INIT)
    return graph

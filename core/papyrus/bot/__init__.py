"""The Papyrus scouting bot built on the command graph."""

from papyrus.bot.agent import PapyrusBot
from papyrus.bot.messages import (
    CommandOutput,
    PlayerChatMessage,
    PlayerListAction,
    PlayerListEntry,
    PlayerPositionMessage,
    Vector3,
)
from papyrus.bot.state import BotState
from papyrus.bot.workflow import CHECK_DIMENSION, INIT, TELEPORT, WAITING, build_papyrus_graph

__all__ = [
    "PapyrusBot",
    "BotState",
    "build_papyrus_graph",
    "INIT",
    "WAITING",
    "CHECK_DIMENSION",
    "TELEPORT",
    "CommandOutput",
    "PlayerListAction",
    "PlayerListEntry",
    "Vector3",
    "PlayerPositionMessage",
    "PlayerChatMessage",
]

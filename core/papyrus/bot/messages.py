"""Pydantic models for what the bot receives from the session and what it republishes.

Inbound (decoded by the transport):
- PlayerListEntry, Vector3: roster and position payloads
- CommandOutput: the asynchronous result of an issued command

Outbound (sent to broadcast clients as JSON):
- PlayerPositionMessage
- PlayerChatMessage
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field


class Vector3(BaseModel):
    """A position in the world."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class PlayerListEntry(BaseModel):
    """One player in the session roster."""

    uuid: str
    name: str


class PlayerListAction(StrEnum):
    ADD = "add"
    REMOVE = "remove"


class CommandOutput(BaseModel):
    """Reply frame for an issued command.

    origin_id is the correlation key the transport handed out when the
    command was issued.
    """

    origin_id: str
    success_count: int = 0
    messages: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.success_count > 0


class _OutboundMessage(BaseModel):
    model_config = {"populate_by_name": True}

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class PlayerPositionMessage(_OutboundMessage):
    """Last known horizontal position of a player."""

    type: Literal["position"] = "position"
    player_name: str = Field(alias="playerName")
    x: float
    z: float


class PlayerChatMessage(_OutboundMessage):
    """A chat line seen in the session."""

    type: Literal["chat"] = "chat"
    player_name: str = Field(alias="playerName")
    message: str

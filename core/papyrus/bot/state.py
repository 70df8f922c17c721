"""
Bot State - The agent context handed to every node evaluation.

Holds what the bot knows about the session: the roster, last known
positions and when they were recorded, and which player the workflow is
currently working on. Node callbacks read and write it through the context
argument; nodes never keep their own copy.
"""

from dataclasses import dataclass, field

from papyrus.bot.messages import PlayerListEntry, Vector3

NIL_UUID = "00000000-0000-0000-0000-000000000000"


@dataclass
class BotState:
    """Mutable session knowledge owned by the bot."""

    players: dict[str, PlayerListEntry] = field(default_factory=dict)  # uuid -> entry
    known_positions: dict[str, Vector3] = field(default_factory=dict)  # uuid -> position
    runtime_lookup: dict[int, str] = field(default_factory=dict)  # runtime id -> uuid
    last_updated: dict[str, float] = field(default_factory=dict)  # uuid -> epoch seconds
    focused_player: str | None = None
    bot_uuid: str = NIL_UUID
    seen_bot: bool = False

    def player_name(self, uuid: str) -> str | None:
        entry = self.players.get(uuid)
        return entry.name if entry else None

    def focused_entry(self) -> PlayerListEntry | None:
        if self.focused_player is None:
            return None
        return self.players.get(self.focused_player)

    def record_position(self, uuid: str, position: Vector3, now: float) -> None:
        self.known_positions[uuid] = position
        self.last_updated[uuid] = now

    def stale_player(self, now: float, stale_after: float) -> PlayerListEntry | None:
        """
        Find the first player whose position needs refreshing.

        A player is stale when no position was ever recorded, or the last
        one is older than stale_after seconds. The bot itself is skipped.
        """
        for uuid, entry in self.players.items():
            if uuid == self.bot_uuid:
                continue
            updated = self.last_updated.get(uuid)
            if updated is None or updated + stale_after < now:
                return entry
        return None

"""
Event Bus - Pub/sub for everything the bot observes.

Lets the bot:
- Publish player position and chat updates as they arrive
- Publish workflow state transitions
- Feed outbound sinks (the broadcast server) without knowing about them
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of events that can be published."""

    # Roster
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    PLAYER_POSITION = "player_position"
    PLAYER_CHAT = "player_chat"

    # Workflow
    STATE_CHANGED = "state_changed"

    # Bot lifecycle
    BOT_IN_GAME = "bot_in_game"
    BOT_DISCONNECTED = "bot_disconnected"


@dataclass
class BotEvent:
    """An event observed by the bot."""

    type: EventType
    source: str = ""  # Bot name that observed it
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "type": self.type.value,
            "source": self.source,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


# Type for event handlers
EventHandler = Callable[[BotEvent], Awaitable[None]]


@dataclass
class Subscription:
    """A subscription to events."""

    id: str
    event_types: set[EventType]
    handler: EventHandler


class EventBus:
    """
    Async pub/sub event bus.

    Example:
        bus = EventBus()

        async def on_position(event: BotEvent):
            print(event.data["player_name"], event.data["x"], event.data["z"])

        bus.subscribe([EventType.PLAYER_POSITION], on_position)

        await bus.emit_player_position("Papyrus", "Steve", 10.0, 64.0, -3.0)
    """

    def __init__(
        self,
        max_history: int = 1000,
        max_concurrent_handlers: int = 10,
    ):
        """
        Initialize event bus.

        Args:
            max_history: Maximum events to keep in history
            max_concurrent_handlers: Maximum concurrent handler executions
        """
        self._subscriptions: dict[str, Subscription] = {}
        self._event_history: list[BotEvent] = []
        self._max_history = max_history
        self._semaphore = asyncio.Semaphore(max_concurrent_handlers)
        self._subscription_counter = 0
        self._lock = asyncio.Lock()

    def subscribe(self, event_types: list[EventType], handler: EventHandler) -> str:
        """
        Subscribe to events.

        Returns:
            Subscription ID (use to unsubscribe)
        """
        self._subscription_counter += 1
        sub_id = f"sub_{self._subscription_counter}"
        self._subscriptions[sub_id] = Subscription(
            id=sub_id,
            event_types=set(event_types),
            handler=handler,
        )
        logger.debug(f"Subscription {sub_id} registered for {event_types}")
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns True if it existed."""
        if subscription_id in self._subscriptions:
            del self._subscriptions[subscription_id]
            logger.debug(f"Subscription {subscription_id} removed")
            return True
        return False

    async def publish(self, event: BotEvent) -> None:
        """Publish an event to all matching subscribers."""
        async with self._lock:
            self._event_history.append(event)
            if len(self._event_history) > self._max_history:
                self._event_history = self._event_history[-self._max_history :]

        handlers = [
            subscription.handler
            for subscription in self._subscriptions.values()
            if event.type in subscription.event_types
        ]
        if handlers:
            await self._execute_handlers(event, handlers)

    async def _execute_handlers(self, event: BotEvent, handlers: list[EventHandler]) -> None:
        """Execute handlers concurrently with rate limiting."""

        async def run_handler(handler: EventHandler) -> None:
            async with self._semaphore:
                try:
                    await handler(event)
                except Exception as e:
                    logger.error(f"Handler error for {event.type}: {e}")

        await asyncio.gather(*[run_handler(h) for h in handlers], return_exceptions=True)

    # === CONVENIENCE PUBLISHERS ===

    async def emit_player_position(
        self,
        source: str,
        player_name: str,
        x: float,
        y: float,
        z: float,
    ) -> None:
        """Emit a player position update."""
        await self.publish(
            BotEvent(
                type=EventType.PLAYER_POSITION,
                source=source,
                data={"player_name": player_name, "x": x, "y": y, "z": z},
            )
        )

    async def emit_player_chat(self, source: str, player_name: str, message: str) -> None:
        """Emit a chat line."""
        await self.publish(
            BotEvent(
                type=EventType.PLAYER_CHAT,
                source=source,
                data={"player_name": player_name, "message": message},
            )
        )

    async def emit_roster_change(
        self,
        source: str,
        joined: bool,
        player_uuid: str,
        player_name: str,
    ) -> None:
        """Emit a player joined/left event."""
        await self.publish(
            BotEvent(
                type=EventType.PLAYER_JOINED if joined else EventType.PLAYER_LEFT,
                source=source,
                data={"uuid": player_uuid, "player_name": player_name},
            )
        )

    async def emit_state_changed(
        self,
        source: str,
        old_state: str | None,
        new_state: str | None,
    ) -> None:
        """Emit a workflow state transition."""
        await self.publish(
            BotEvent(
                type=EventType.STATE_CHANGED,
                source=source,
                data={"old_state": old_state, "new_state": new_state},
            )
        )

    async def emit_bot_in_game(self, source: str) -> None:
        """Emit that the bot spawned and is driving its workflow."""
        await self.publish(BotEvent(type=EventType.BOT_IN_GAME, source=source))

    async def emit_bot_disconnected(self, source: str, reason: str) -> None:
        """Emit that the session ended."""
        await self.publish(
            BotEvent(
                type=EventType.BOT_DISCONNECTED,
                source=source,
                data={"reason": reason},
            )
        )

    # === QUERY OPERATIONS ===

    def get_history(self, event_type: EventType | None = None, limit: int = 100) -> list[BotEvent]:
        """Get recent events, most recent first."""
        events = self._event_history[::-1]
        if event_type:
            events = [e for e in events if e.type == event_type]
        return events[:limit]

    def get_stats(self) -> dict:
        """Get event bus statistics."""
        type_counts: dict[str, int] = {}
        for event in self._event_history:
            type_counts[event.type.value] = type_counts.get(event.type.value, 0) + 1

        return {
            "total_events": len(self._event_history),
            "subscriptions": len(self._subscriptions),
            "events_by_type": type_counts,
        }

    # === WAITING OPERATIONS ===

    async def wait_for(self, event_type: EventType, timeout: float | None = None) -> BotEvent | None:
        """
        Wait for the next event of a type.

        Returns:
            The event if received, None on timeout
        """
        result: BotEvent | None = None
        event_received = asyncio.Event()

        async def handler(event: BotEvent) -> None:
            nonlocal result
            result = event
            event_received.set()

        sub_id = self.subscribe(event_types=[event_type], handler=handler)
        try:
            if timeout:
                try:
                    await asyncio.wait_for(event_received.wait(), timeout=timeout)
                except TimeoutError:
                    return None
            else:
                await event_received.wait()
            return result
        finally:
            self.unsubscribe(sub_id)

"""Tests for EventBus publish/subscribe."""

import asyncio

import pytest

from papyrus.runtime import BotEvent, EventBus, EventType


class TestPublishSubscribe:
    @pytest.mark.asyncio
    async def test_handler_receives_matching_events_only(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe([EventType.PLAYER_CHAT], handler)
        await bus.emit_player_chat("Papyrus", "Steve", "hi")
        await bus.emit_player_position("Papyrus", "Steve", 1.0, 2.0, 3.0)

        assert [event.type for event in received] == [EventType.PLAYER_CHAT]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        sub_id = bus.subscribe([EventType.STATE_CHANGED], handler)
        assert bus.unsubscribe(sub_id) is True
        assert bus.unsubscribe(sub_id) is False

        await bus.emit_state_changed("Papyrus", "init", "waiting-for-out-of-date-player")
        assert received == []

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_affect_others(self):
        bus = EventBus()
        received = []

        async def broken(event):
            raise RuntimeError("boom")

        async def healthy(event):
            received.append(event)

        bus.subscribe([EventType.PLAYER_CHAT], broken)
        bus.subscribe([EventType.PLAYER_CHAT], healthy)
        await bus.emit_player_chat("Papyrus", "Steve", "hi")

        assert len(received) == 1


class TestHistory:
    @pytest.mark.asyncio
    async def test_history_is_bounded_and_most_recent_first(self):
        bus = EventBus(max_history=2)
        for i in range(3):
            await bus.emit_player_chat("Papyrus", "Steve", f"line {i}")

        history = bus.get_history()
        assert [event.data["message"] for event in history] == ["line 2", "line 1"]
        assert bus.get_stats()["total_events"] == 2

    def test_event_to_dict(self):
        event = BotEvent(type=EventType.BOT_IN_GAME, source="Papyrus")
        data = event.to_dict()
        assert data["type"] == "bot_in_game"
        assert data["source"] == "Papyrus"
        assert "timestamp" in data


class TestWaitFor:
    @pytest.mark.asyncio
    async def test_wait_for_event(self):
        bus = EventBus()

        async def publish_later():
            await asyncio.sleep(0.01)
            await bus.emit_state_changed("Papyrus", "a", "b")

        task = asyncio.create_task(publish_later())
        event = await bus.wait_for(EventType.STATE_CHANGED, timeout=1.0)
        await task

        assert event.data == {"old_state": "a", "new_state": "b"}

    @pytest.mark.asyncio
    async def test_wait_for_timeout(self):
        bus = EventBus()
        assert await bus.wait_for(EventType.PLAYER_CHAT, timeout=0.01) is None

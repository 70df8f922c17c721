"""Tests for PendingReplyCorrelator."""

import pytest

from papyrus.graph import CommandOutcome, PendingReplyCorrelator


class RecordingNode:
    """Stands in for an ExecuteCommandNode waiting on one key."""

    def __init__(self):
        self.received: list[tuple[str, CommandOutcome]] = []

    def receive_outcome(self, key, outcome):
        self.received.append((key, outcome))
        return True


class TestRegisterResolve:
    def test_resolve_delivers_to_registered_node(self):
        correlator = PendingReplyCorrelator()
        node = RecordingNode()
        correlator.register("k1", node, "say hi")

        assert correlator.resolve("k1", True, ["ok"]) is True
        assert node.received == [("k1", CommandOutcome(key="k1", success=True, payload=["ok"]))]
        assert "k1" not in correlator

    def test_out_of_order_replies_reach_their_own_nodes(self):
        correlator = PendingReplyCorrelator()
        first, second = RecordingNode(), RecordingNode()
        correlator.register("k1", first)
        correlator.register("k2", second)

        correlator.resolve("k2", False)
        correlator.resolve("k1", True)

        assert first.received[0][1].success is True
        assert second.received[0][1].success is False
        assert len(correlator) == 0

    def test_duplicate_key_is_rejected(self):
        correlator = PendingReplyCorrelator()
        correlator.register("k1", RecordingNode())
        with pytest.raises(ValueError):
            correlator.register("k1", RecordingNode())

    def test_get_returns_pending_request(self):
        correlator = PendingReplyCorrelator()
        node = RecordingNode()
        correlator.register("k1", node, "gamemode creative @s")

        request = correlator.get("k1")
        assert request.node is node
        assert request.command == "gamemode creative @s"
        assert correlator.get("missing") is None


class TestOrphans:
    def test_unknown_key_is_dropped(self):
        correlator = PendingReplyCorrelator()
        assert correlator.resolve("nobody", True) is False
        assert correlator.orphaned_count == 1

    def test_second_reply_for_same_key_is_orphaned(self):
        correlator = PendingReplyCorrelator()
        node = RecordingNode()
        correlator.register("k1", node)

        correlator.resolve("k1", True)
        assert correlator.resolve("k1", True) is False
        assert len(node.received) == 1

    def test_clear_orphans_everything(self):
        correlator = PendingReplyCorrelator()
        node = RecordingNode()
        correlator.register("k1", node)
        correlator.register("k2", node)

        assert correlator.clear() == 2
        assert correlator.resolve("k1", True) is False
        assert node.received == []

    def test_discard_single_key(self):
        correlator = PendingReplyCorrelator()
        correlator.register("k1", RecordingNode())

        assert correlator.discard("k1") is True
        assert correlator.discard("k1") is False

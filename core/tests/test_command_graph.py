"""
Tests for StatefulCommandGraph: state registry, tick driver, reply dispatch.

Covers the scan/done workflows end to end, orphaned replies after a state
change, deferred state changes inside a tick, and misconfiguration.
"""

import contextvars
import logging
import threading

import pytest

from papyrus.graph import (
    DelegatingCommandNode,
    ExecuteCommandNode,
    GraphError,
    NodeResult,
    NodeWiringError,
    ParallelCommandNode,
    RetryPolicy,
    SequentialCommandNode,
    StateChangeCommandNode,
    StatefulCommandGraph,
    UnknownStateError,
)
from papyrus.observability import get_log_context
from papyrus.runtime import LoopbackTransport


def always_success(graph, context):
    return NodeResult.SUCCESS


@pytest.fixture
def transport():
    return LoopbackTransport()


@pytest.fixture
def scan_graph(transport):
    graph = StatefulCommandGraph(transport)
    graph.add_state(
        "scan",
        SequentialCommandNode(
            ExecuteCommandNode("check", RetryPolicy.NO_RETRY),
            StateChangeCommandNode("done"),
        ),
    )
    graph.add_state("done", DelegatingCommandNode(always_success))
    graph.set_state("scan")
    return graph


class TestScanWorkflow:
    def test_success_reply_reaches_done(self, scan_graph, transport):
        assert scan_graph.tick() == NodeResult.PENDING
        assert transport.commands == ["check"]

        scan_graph.deliver_reply(transport.issued[0].key, True)
        assert scan_graph.tick() == NodeResult.SUCCESS
        assert scan_graph.current_state == "done"

        for _ in range(3):
            assert scan_graph.tick() == NodeResult.SUCCESS
        assert scan_graph.current_state == "done"
        assert transport.commands == ["check"]

    def test_failure_reply_never_reaches_done(self, scan_graph, transport):
        scan_graph.tick()
        scan_graph.deliver_reply(transport.issued[0].key, False)

        for _ in range(5):
            assert scan_graph.tick() == NodeResult.FAILED
        assert scan_graph.current_state == "scan"
        assert transport.commands == ["check"]

    def test_no_reply_stays_pending(self, scan_graph, transport):
        for _ in range(10):
            assert scan_graph.tick() == NodeResult.PENDING
        assert scan_graph.current_state == "scan"


class TestStateChanges:
    def test_reply_for_abandoned_tree_is_dropped(self, scan_graph, transport):
        scan_graph.tick()
        old_key = transport.issued[0].key

        scan_graph.set_state("done")
        assert scan_graph.deliver_reply(old_key, True) is False
        assert scan_graph.correlator.orphaned_count == 1
        assert scan_graph.tick() == NodeResult.SUCCESS

    def test_reentering_state_starts_fresh(self, scan_graph, transport):
        scan_graph.tick()
        old_key = transport.issued[0].key

        scan_graph.set_state("scan")
        assert scan_graph.deliver_reply(old_key, True) is False
        assert scan_graph.tick() == NodeResult.PENDING
        assert transport.commands == ["check", "check"]

    def test_state_change_applies_after_tick(self, transport):
        trailing_calls = []

        def trailing(graph, context):
            trailing_calls.append(graph.current_state)
            return NodeResult.SUCCESS

        graph = StatefulCommandGraph(transport)
        graph.add_state(
            "a",
            SequentialCommandNode(StateChangeCommandNode("b"), DelegatingCommandNode(trailing)),
        )
        graph.add_state("b", DelegatingCommandNode(lambda g, ctx: NodeResult.PENDING))
        graph.set_state("a")

        assert graph.tick() == NodeResult.SUCCESS
        assert trailing_calls == ["a"]
        assert graph.current_state == "b"

    def test_last_state_change_in_a_tick_wins(self, transport):
        graph = StatefulCommandGraph(transport)
        graph.add_state(
            "a",
            SequentialCommandNode(StateChangeCommandNode("b"), StateChangeCommandNode("c")),
        )
        graph.add_state("b", DelegatingCommandNode(always_success))
        graph.add_state("c", DelegatingCommandNode(always_success))
        graph.set_state("a")

        graph.tick()
        assert graph.current_state == "c"

    def test_unknown_state_raises(self, scan_graph):
        with pytest.raises(UnknownStateError) as exc_info:
            scan_graph.set_state("nowhere")
        assert isinstance(exc_info.value, KeyError)
        assert "nowhere" in str(exc_info.value)
        assert scan_graph.current_state == "scan"

    def test_state_change_to_unknown_state_raises_during_tick(self, transport):
        graph = StatefulCommandGraph(transport)
        graph.add_state("a", StateChangeCommandNode("nowhere"))
        graph.set_state("a")

        with pytest.raises(UnknownStateError):
            graph.tick()
        assert graph.current_state == "a"


class TestReplyDispatch:
    def test_reply_from_another_thread_is_seen_next_tick(self, scan_graph, transport):
        scan_graph.tick()
        key = transport.issued[0].key

        worker = threading.Thread(target=scan_graph.deliver_reply, args=(key, True))
        worker.start()
        worker.join()

        assert scan_graph.tick() == NodeResult.SUCCESS
        assert scan_graph.current_state == "done"

    def test_duplicate_key_from_transport_is_an_error(self):
        class ConstantKeyTransport:
            def issue(self, command):
                return "same"

        graph = StatefulCommandGraph(ConstantKeyTransport())
        graph.add_state(
            "a",
            ParallelCommandNode()
            .add(ExecuteCommandNode("first"))
            .add(ExecuteCommandNode("second")),
        )
        graph.set_state("a")

        with pytest.raises(ValueError):
            graph.tick()


class TestRegistry:
    def test_tick_before_set_state_raises(self, transport):
        graph = StatefulCommandGraph(transport)
        graph.add_state("a", DelegatingCommandNode(always_success))
        with pytest.raises(GraphError):
            graph.tick()

    def test_states_and_active_node(self, scan_graph):
        assert scan_graph.states == ["scan", "done"]
        assert scan_graph.active_node is scan_graph.get_state("scan")

    def test_get_unknown_state_raises(self, scan_graph):
        with pytest.raises(UnknownStateError):
            scan_graph.get_state("nowhere")

    def test_child_node_cannot_be_a_state_root(self, transport):
        child = DelegatingCommandNode(always_success)
        SequentialCommandNode(child)

        graph = StatefulCommandGraph(transport)
        with pytest.raises(NodeWiringError):
            graph.add_state("a", child)

    def test_states_cannot_share_a_root(self, transport):
        root = DelegatingCommandNode(always_success)
        graph = StatefulCommandGraph(transport)
        graph.add_state("a", root)
        with pytest.raises(NodeWiringError):
            graph.add_state("b", root)

    def test_tick_count(self, scan_graph):
        scan_graph.tick()
        scan_graph.tick()
        assert scan_graph.tick_count == 2


class TestLogging:
    def _keyed(self, caplog, event):
        return [r for r in caplog.records if getattr(r, "event", None) == event]

    def test_issue_and_delivery_carry_command_key(self, scan_graph, transport, caplog):
        caplog.set_level(logging.DEBUG, logger="papyrus.graph")

        scan_graph.tick()
        key = transport.issued[0].key
        scan_graph.deliver_reply(key, True)

        issued = self._keyed(caplog, "command_issued")
        delivered = self._keyed(caplog, "reply_delivered")
        assert [r.command_key for r in issued] == [key]
        assert [r.command_key for r in delivered] == [key]

    def test_orphaned_reply_carries_command_key(self, scan_graph, caplog):
        caplog.set_level(logging.DEBUG, logger="papyrus.graph")

        assert scan_graph.deliver_reply("unknown-key", True) is False

        orphaned = self._keyed(caplog, "orphaned_reply")
        assert [r.command_key for r in orphaned] == ["unknown-key"]

    def test_tick_refreshes_state_context(self, scan_graph):
        assert get_log_context()["state"] == "scan"

        # A state change made from another task's context is not visible here
        # until the next tick.
        contextvars.copy_context().run(scan_graph.set_state, "done")
        assert get_log_context()["state"] == "scan"

        scan_graph.tick()
        assert get_log_context()["state"] == "done"

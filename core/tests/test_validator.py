"""Tests for GraphValidator."""

from papyrus.graph import (
    ConditionalCommandNode,
    DelegatingCommandNode,
    ExecuteCommandNode,
    FactoryCommandNode,
    NodeResult,
    StateChangeCommandNode,
    StatefulCommandGraph,
)
from papyrus.runtime import LoopbackTransport


def test_valid_graph():
    graph = StatefulCommandGraph(LoopbackTransport())
    graph.add_state(
        "a",
        ConditionalCommandNode(ExecuteCommandNode("x")).on_success(StateChangeCommandNode("b")),
    )
    graph.add_state("b", StateChangeCommandNode("a"))

    result = graph.validate()
    assert result.success is True
    assert result.error == ""


def test_unregistered_target_is_reported():
    graph = StatefulCommandGraph(LoopbackTransport())
    graph.add_state(
        "a",
        ConditionalCommandNode(ExecuteCommandNode("x")).on_failed(StateChangeCommandNode("missing")),
    )

    result = graph.validate()
    assert result.success is False
    assert "missing" in result.error


def test_empty_registry_is_reported():
    result = StatefulCommandGraph(LoopbackTransport()).validate()
    assert result.success is False
    assert result.errors == ["No states registered"]


def test_unbuilt_factory_is_a_warning():
    graph = StatefulCommandGraph(LoopbackTransport())
    graph.add_state("a", FactoryCommandNode(lambda g, ctx: StateChangeCommandNode("nowhere")))
    graph.add_state("b", DelegatingCommandNode(lambda g, ctx: NodeResult.SUCCESS))

    result = graph.validate()
    assert result.success is True
    assert len(result.warnings) == 1

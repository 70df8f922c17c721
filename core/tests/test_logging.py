"""Tests for structured logging and the workflow log context."""

import json
import logging

from papyrus.graph import DelegatingCommandNode, NodeResult, StatefulCommandGraph
from papyrus.observability import clear_log_context, get_log_context, set_log_context
from papyrus.observability.logging import HumanReadableFormatter, StructuredFormatter
from papyrus.runtime import LoopbackTransport


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("papyrus.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_set_merges_fields(self):
        set_log_context(bot="Papyrus")
        set_log_context(state="init")
        assert get_log_context() == {"bot": "Papyrus", "state": "init"}

    def test_get_returns_copy(self):
        set_log_context(bot="Papyrus")
        get_log_context()["bot"] = "Other"
        assert get_log_context()["bot"] == "Papyrus"

    def test_clear(self):
        set_log_context(bot="Papyrus")
        clear_log_context()
        assert get_log_context() == {}

    def test_state_entry_updates_context(self):
        graph = StatefulCommandGraph(LoopbackTransport())
        graph.add_state("idle", DelegatingCommandNode(lambda g, ctx: NodeResult.PENDING))
        graph.set_state("idle")
        assert get_log_context()["state"] == "idle"


class TestFormatters:
    def test_structured_formatter_includes_context(self):
        set_log_context(bot="Papyrus", state="teleport")
        entry = json.loads(
            StructuredFormatter().format(_record("issued", event="issue", command_key="abc"))
        )

        assert entry["message"] == "issued"
        assert entry["level"] == "info"
        assert entry["bot"] == "Papyrus"
        assert entry["state"] == "teleport"
        assert entry["event"] == "issue"
        assert entry["command_key"] == "abc"

    def test_structured_formatter_strips_ansi(self):
        entry = json.loads(StructuredFormatter().format(_record("\033[32mgreen\033[0m")))
        assert entry["message"] == "green"

    def test_human_formatter_prefix(self):
        set_log_context(bot="Papyrus", state="init")
        line = HumanReadableFormatter().format(_record("hello"))
        assert "[bot:Papyrus | state:init] hello" in line

    def test_human_formatter_without_context(self):
        line = HumanReadableFormatter().format(_record("hello"))
        assert line.endswith(" hello")
        assert "bot:" not in line

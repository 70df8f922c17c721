"""
Structured logging with automatic workflow context.

Key Features:
- Standard logger.info() calls pick up the active state automatically
- ContextVar-based propagation: thread-safe and async-safe
- Dual output modes: JSON for production, human-readable for development

Architecture:
    BotRuntime.start() → sets bot name once
        ↓ (automatic propagation via ContextVar)
    StatefulCommandGraph._enter() → updates state on every transition
        ↓
    Node code → logger.info("message") → gets bot and state automatically
"""

import json
import logging
import os
import re
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

log_context: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)

# ANSI escape code pattern (matches \033[...m or \x1b[...m)
ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m|\033\[[0-9;]*m")


def strip_ansi_codes(text: str) -> str:
    """Remove ANSI escape codes from text for clean JSON logging."""
    return ANSI_ESCAPE_PATTERN.sub("", text)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Produces machine-parseable log entries with:
    - Standard fields (timestamp, level, logger, message)
    - Workflow context (bot, state) from the ContextVar
    - Custom fields from extra dict (event, command_key)
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        context = log_context.get() or {}

        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": strip_ansi_codes(record.getMessage()),
        }
        log_entry.update(context)

        event = getattr(record, "event", None)
        if event is not None:
            log_entry["event"] = strip_ansi_codes(str(event)) if isinstance(event, str) else event

        command_key = getattr(record, "command_key", None)
        if command_key is not None:
            log_entry["command_key"] = command_key

        if record.exc_info:
            log_entry["exception"] = strip_ansi_codes(self.formatException(record.exc_info))

        return json.dumps(log_entry)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Colorized level plus a [bot | state] prefix from the log context.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as human-readable string."""
        context = log_context.get() or {}

        prefix_parts = []
        if context.get("bot"):
            prefix_parts.append(f"bot:{context['bot']}")
        if context.get("state"):
            prefix_parts.append(f"state:{context['state']}")
        context_prefix = f"[{' | '.join(prefix_parts)}] " if prefix_parts else ""

        color = self.COLORS.get(record.levelname, "")
        level = f"{record.levelname:<8}"

        event = ""
        record_event = getattr(record, "event", None)
        if record_event is not None:
            event = f" [{record_event}]"

        message = f"{color}[{level}]{self.RESET} {context_prefix}{record.getMessage()}{event}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def configure_logging(
    level: str = "INFO",
    format: str = "auto",  # "json", "human", or "auto"
) -> None:
    """
    Configure logging for the application.

    Call ONCE at startup (the CLI does this) or from a test fixture.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format:
            - "json": Machine-parseable JSON (for production)
            - "human": Human-readable with colors (for development)
            - "auto": JSON if LOG_FORMAT=json or ENV=production, else human
    """
    if format == "auto":
        log_format_env = os.getenv("LOG_FORMAT", "").lower()
        env = os.getenv("ENV", "development").lower()
        format = "json" if log_format_env == "json" or env == "production" else "human"

    if format == "json":
        formatter: logging.Formatter = StructuredFormatter()
        _disable_third_party_colors()
    else:
        formatter = HumanReadableFormatter()

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # websockets logs every handshake at INFO; route it through our handler
    # and keep it quiet unless we are debugging.
    ws_logger = logging.getLogger("websockets")
    ws_logger.handlers.clear()
    ws_logger.propagate = True
    if root_logger.level > logging.DEBUG:
        ws_logger.setLevel(logging.WARNING)


def _disable_third_party_colors() -> None:
    """Disable color output in third-party libraries for clean JSON logging."""
    os.environ["NO_COLOR"] = "1"
    os.environ["FORCE_COLOR"] = "0"


def set_log_context(**kwargs: Any) -> None:
    """
    Merge fields into the log context for the current execution.

    Set at key points:
    - BotRuntime.start(): bot
    - StatefulCommandGraph state entry: state
    """
    current = log_context.get() or {}
    log_context.set({**current, **kwargs})


def get_log_context() -> dict:
    """Return a copy of the current log context (empty if unset)."""
    context = log_context.get() or {}
    return context.copy()


def clear_log_context() -> None:
    """Clear the log context, e.g. between tests."""
    log_context.set(None)

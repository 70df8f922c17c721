"""
Observability module for structured logging.

- Workflow context (bot, active state) propagated via ContextVar
- Structured JSON logging for production
- Human-readable logging for development
"""

from papyrus.observability.logging import (
    clear_log_context,
    configure_logging,
    get_log_context,
    set_log_context,
)

__all__ = [
    "configure_logging",
    "get_log_context",
    "set_log_context",
    "clear_log_context",
]

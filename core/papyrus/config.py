"""Shared Papyrus configuration utilities.

Centralises reading of ~/.papyrus/configuration.json so the CLI, the runtime
and the workflow builder share one implementation.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

PAPYRUS_CONFIG_FILE = Path.home() / ".papyrus" / "configuration.json"

DEFAULT_BOT_NAME = "Papyrus"
DEFAULT_BROADCAST_PORT = 8080
DEFAULT_STALE_AFTER_SECONDS = 60.0


def get_config_path() -> Path:
    """Return the config file path, honouring PAPYRUS_CONFIG."""
    override = os.environ.get("PAPYRUS_CONFIG")
    return Path(override) if override else PAPYRUS_CONFIG_FILE


def get_papyrus_config() -> dict[str, Any]:
    """Load papyrus configuration; a missing or unreadable file yields {}."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def _section(name: str) -> dict[str, Any]:
    value = get_papyrus_config().get(name, {})
    return value if isinstance(value, dict) else {}


def get_bot_name() -> str:
    return _section("bot").get("name", DEFAULT_BOT_NAME)


def get_stale_after_seconds() -> float:
    return float(_section("bot").get("stale_after_seconds", DEFAULT_STALE_AFTER_SECONDS))


def get_tick_interval() -> float:
    return float(_section("bot").get("tick_interval", 0.05))


def get_broadcast_host() -> str:
    return _section("broadcast").get("host", "0.0.0.0")


def get_broadcast_port() -> int:
    return int(_section("broadcast").get("port", DEFAULT_BROADCAST_PORT))


def get_log_level() -> str:
    return get_papyrus_config().get("log_level", "INFO")


# ---------------------------------------------------------------------------
# BotConfig
# ---------------------------------------------------------------------------


@dataclass
class BotConfig:
    """Bot configuration loaded from ~/.papyrus/configuration.json.

    Example file:
        {
            "bot": {"name": "Papyrus", "stale_after_seconds": 60, "tick_interval": 0.05},
            "broadcast": {"host": "0.0.0.0", "port": 8080},
            "log_level": "INFO"
        }
    """

    bot_name: str = field(default_factory=get_bot_name)
    broadcast_host: str = field(default_factory=get_broadcast_host)
    broadcast_port: int = field(default_factory=get_broadcast_port)
    tick_interval: float = field(default_factory=get_tick_interval)
    stale_after_seconds: float = field(default_factory=get_stale_after_seconds)
    log_level: str = field(default_factory=get_log_level)

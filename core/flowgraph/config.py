"""Shared flowgraph configuration utilities.

Centralises reading of ~/.flowgraph/configuration.json so the engine, the
storage layer and the CLI share one implementation.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

FLOWGRAPH_HOME = Path.home() / ".flowgraph"
FLOWGRAPH_CONFIG_FILE = FLOWGRAPH_HOME / "configuration.json"

DEFAULT_MAX_HISTORY = 50
DEFAULT_SETTLE_DELAY = 1.0
DEFAULT_MAX_SIMULATED_DELAY = 2.0


def get_config_path() -> Path:
    """Return the configuration file path, honouring FLOWGRAPH_CONFIG."""
    override = os.environ.get("FLOWGRAPH_CONFIG")
    return Path(override) if override else FLOWGRAPH_CONFIG_FILE


def get_flowgraph_config() -> dict[str, Any]:
    """Load configuration from disk. Missing or unreadable files yield {}."""
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


def _engine_setting(name: str, default: Any) -> Any:
    return get_flowgraph_config().get("engine", {}).get(name, default)


def get_max_history() -> int:
    """Return the undo depth, falling back to DEFAULT_MAX_HISTORY."""
    return int(_engine_setting("max_history", DEFAULT_MAX_HISTORY))


def get_settle_delay() -> float:
    """Seconds a completed run stays in the completed state before idling."""
    return float(_engine_setting("settle_delay", DEFAULT_SETTLE_DELAY))


def get_step_delay() -> float:
    """Pause inserted after each successful node (pacing for live viewers)."""
    return float(_engine_setting("step_delay", 0.0))


def get_max_simulated_delay() -> float:
    """Upper bound for simulated delay steps."""
    return float(_engine_setting("max_simulated_delay", DEFAULT_MAX_SIMULATED_DELAY))


def get_storage_path() -> Path:
    """Directory used by WorkflowStorage when no path is given."""
    configured = get_flowgraph_config().get("storage", {}).get("path")
    return Path(configured).expanduser() if configured else FLOWGRAPH_HOME / "workflows"


# ---------------------------------------------------------------------------
# FlowgraphConfig – shared across the engine and CLI
# ---------------------------------------------------------------------------


@dataclass
class FlowgraphConfig:
    """Engine configuration loaded from ~/.flowgraph/configuration.json."""

    max_history: int = field(default_factory=get_max_history)
    settle_delay: float = field(default_factory=get_settle_delay)
    step_delay: float = field(default_factory=get_step_delay)
    max_simulated_delay: float = field(default_factory=get_max_simulated_delay)
    storage_path: Path = field(default_factory=get_storage_path)

from __future__ import annotations

from typing import Any

from orchestrator.types import SelfTriggerConfig


def is_self_triggered(extra: Any, marker: SelfTriggerConfig) -> bool:
    """Return True when `extra` carries our own unlock marker.

    Every unlock the orchestrator sends stamps `extra[marker_key] =
    marker_value`; the controller echoes it back on the resulting event.
    Without a configured marker the guard never fires.
    """
    if not marker.enabled:
        return False
    if not isinstance(extra, dict):
        return False
    return extra.get(marker.marker_key) == marker.marker_value

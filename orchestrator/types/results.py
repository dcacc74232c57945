from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class UnlockResult(BaseModel):
    """Outcome of a single remote unlock command.

    Attributes:
        success: Whether the controller accepted the command.
        door: Door display name the command targeted.
        door_id: Controller door id, when the name resolved to one.
        error: Failure description when `success` is false.

    Example:
        >>> from orchestrator.types import UnlockResult
        >>> UnlockResult(success=False, door="Elevator", error="Request timeout")
    """

    success: bool
    door: str
    door_id: Optional[str] = None
    error: Optional[str] = None


class ResolvedGroup(BaseModel):
    """Resolver output. `group=None` means no strategy found a group."""

    group: Optional[str] = None
    strategy: Optional[str] = None
    user_name: Optional[str] = None


class WebhookRegistration(BaseModel):
    success: bool
    id: Optional[str] = None
    existing: bool = False
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class LastEvent(BaseModel):
    type: str
    location: Optional[str] = None
    actor: str = "unknown"
    device: Optional[str] = None
    time: str


class LastUnlock(BaseModel):
    door: str
    reason: str
    time: str


class EngineStats(BaseModel):
    """Running counters owned by a single `RulesEngine` instance.

    Counters only grow. A configuration reload builds a new engine, which
    is the only way they return to zero.
    """

    events_received: int = 0
    events_processed: int = 0
    events_skipped_self: int = 0
    events_skipped_no_action: int = 0
    unlocks_triggered: int = 0
    unlocks_failed: int = 0
    doorbell_events: int = 0
    last_event: Optional[LastEvent] = None
    last_unlock: Optional[LastUnlock] = None
    started_at: str


class DirectoryUser(BaseModel):
    id: str
    name: str = "Unknown"
    unifi_group_name: str
    logical_group_name: str


class RuleMatch(BaseModel):
    """Doors selected for one `(group, location)` lookup."""

    doors: List[str] = Field(default_factory=list)
    delay: float = 0
    matched: int = 0
    used_default: bool = False

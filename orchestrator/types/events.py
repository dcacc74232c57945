from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class NormalizedEvent(BaseModel):
    """Transport-agnostic access event.

    The rules engine depends on this model rather than on the webhook,
    alarm-rule or socket-push payload layouts. The normalizer maps each
    producer shape onto it; every field except `type` is optional because
    producers omit data freely (doorbell answers from a fixed viewer carry
    no actor, for example).

    Attributes:
        type: Event tag, usually one of `EventType`.
        location_name: Door/location display name used for trigger matching.
        device_name: Reader or viewer name; the doorbell fallback key.
        actor_id: Authenticating or answering user, when known.
        reason_code: Doorbell outcome discriminator.
        extra: Passthrough map echoed by the controller; carries the
            self-trigger marker on our own unlocks.
        source: Nested `_source` payload of a socket-push log wrapper.
        triggers: Alarm-rule trigger list, for alarm-shaped payloads.

    Example:
        >>> from orchestrator.types import NormalizedEvent
        >>> NormalizedEvent(type="access.door.unlock", location_name="Main Entrance")
    """

    type: str
    event_object_id: Optional[str] = None

    location_id: Optional[str] = None
    location_name: Optional[str] = None
    location_type: Optional[str] = None

    device_name: Optional[str] = None
    device_type: Optional[str] = None
    device_id: Optional[str] = None

    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    actor_type: Optional[str] = None

    auth_type: Optional[str] = None
    policy_id: Optional[str] = None
    policy_name: Optional[str] = None
    result: Optional[str] = None
    reader_id: Optional[str] = None
    reason_code: Optional[int] = None
    request_id: Optional[str] = None
    host_device_mac: Optional[str] = None

    extra: Optional[Dict[str, Any]] = None
    source: Optional[Dict[str, Any]] = None
    triggers: List[Dict[str, Any]] = Field(default_factory=list)


class ProcessedEvent(BaseModel):
    """Display-ready summary of one handled event, pushed to the live feed."""

    id: str
    timestamp: str
    type: str = "unknown"
    actor: str = "unknown"
    location: str = "unknown"
    device: Optional[str] = None
    action: str = "Processed"
    success: bool = True
    unlock_door: Optional[str] = None
    unlock_reason: Optional[str] = None

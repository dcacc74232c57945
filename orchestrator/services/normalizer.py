"""Normalization of inbound access-controller payloads.

Three producers feed the orchestrator and none of them agree on layout:

- the API webhook (and the direct webhook) send `{"event", "data": {...}}`
- Alarm Manager rules wrap everything in `{"alarm": {...}}`
- anything else is handled best-effort from flat top-level fields

The socket-push transport additionally wraps door unlocks and doorbell
completions in an `access.logs.add` event whose `_source` uses a different
layout; `unwrap_log_event` re-derives the inner event from it.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from orchestrator.types import DoorbellReasonCode, EventType, NormalizedEvent, PayloadShape

logger = logging.getLogger(__name__)

REASON_CODE_DESCRIPTIONS: Dict[int, str] = {
    DoorbellReasonCode.TIMED_OUT: "Doorbell timed out",
    DoorbellReasonCode.DECLINED: "Admin declined unlock",
    DoorbellReasonCode.ADMIN_UNLOCKED: "Admin unlocked door",
    DoorbellReasonCode.VISITOR_CANCELED: "Visitor canceled",
    DoorbellReasonCode.ANSWERED_ELSEWHERE: "Answered by another admin",
}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _first(*values: Any) -> Optional[str]:
    for value in values:
        text = _as_str(value)
        if text:
            return text
    return None


def detect_shape(raw: Any) -> PayloadShape:
    """Classify a raw payload. Order is significant: the first match wins."""
    if not isinstance(raw, dict):
        return PayloadShape.UNRECOGNIZED
    if _as_str(raw.get("event")) and isinstance(raw.get("data"), dict):
        return PayloadShape.DIRECT
    if isinstance(raw.get("alarm"), dict) and raw["alarm"]:
        return PayloadShape.ALARM
    if _as_str(raw.get("type")) or _as_str(raw.get("event_type")):
        return PayloadShape.GENERIC
    return PayloadShape.UNRECOGNIZED


def infer_alarm_type(triggers: List[Any]) -> str:
    """Guess the event type of an Alarm Manager payload from its trigger keys."""
    for trigger in triggers:
        key = (_as_str(_as_dict(trigger).get("key")) or "").lower()
        if "unlock" in key or "door" in key:
            return EventType.DOOR_UNLOCK.value
        if "doorbell" in key or "ring" in key:
            return EventType.DOORBELL_INCOMING.value
    return EventType.ALARM_UNKNOWN.value


def _decode_direct(raw: Dict[str, Any]) -> NormalizedEvent:
    data = raw["data"]
    location = _as_dict(data.get("location"))
    device = _as_dict(data.get("device"))
    actor = _as_dict(data.get("actor"))
    obj = _as_dict(data.get("object"))

    # Passthrough map: the unlock body's `extra` is echoed on the object
    extra = obj.get("extra") or data.get("extra")
    source = data.get("_source")

    return NormalizedEvent(
        type=_as_str(raw["event"]),
        event_object_id=_as_str(raw.get("event_object_id")),
        location_id=_as_str(location.get("id")),
        location_name=_as_str(location.get("name")),
        location_type=_as_str(location.get("location_type")),
        device_name=_first(device.get("name"), device.get("alias")),
        device_type=_as_str(device.get("device_type")),
        device_id=_as_str(device.get("id")),
        actor_id=_as_str(actor.get("id")),
        actor_name=_as_str(actor.get("name")),
        actor_type=_as_str(actor.get("type")),
        auth_type=_as_str(obj.get("authentication_type")),
        policy_id=_as_str(obj.get("policy_id")),
        policy_name=_as_str(obj.get("policy_name")),
        result=_as_str(obj.get("result")),
        reader_id=_as_str(obj.get("reader_id")),
        reason_code=_as_int(obj.get("reason_code")),
        request_id=_as_str(obj.get("request_id")),
        host_device_mac=_as_str(obj.get("host_device_mac")),
        extra=extra if isinstance(extra, dict) else None,
        source=source if isinstance(source, dict) else None,
    )


def _decode_alarm(raw: Dict[str, Any]) -> NormalizedEvent:
    alarm = raw["alarm"]
    triggers_raw = alarm.get("triggers")
    triggers = [t for t in triggers_raw if isinstance(t, dict)] if isinstance(triggers_raw, list) else []
    sources = alarm.get("sources")
    first_source = _as_dict(sources[0]) if isinstance(sources, list) and sources else {}

    return NormalizedEvent(
        type=infer_alarm_type(triggers),
        location_name=_as_str(alarm.get("name")) or "unknown",
        device_id=_as_str(first_source.get("device")),
        triggers=triggers,
    )


def _decode_generic(raw: Dict[str, Any]) -> NormalizedEvent:
    location = _as_dict(raw.get("location"))
    device = _as_dict(raw.get("device"))
    actor = _as_dict(raw.get("actor"))
    extra = raw.get("extra")

    return NormalizedEvent(
        type=_first(raw.get("type"), raw.get("event_type")),
        event_object_id=_first(raw.get("event_object_id"), raw.get("id")),
        location_id=_first(location.get("id"), raw.get("door_id")),
        location_name=_first(location.get("name"), raw.get("door_name"), raw.get("location_name")),
        device_name=_first(device.get("name"), raw.get("device_name")),
        device_type=_first(device.get("device_type"), raw.get("device_type")),
        device_id=_as_str(device.get("id")),
        actor_id=_first(actor.get("id"), raw.get("user_id")),
        actor_name=_first(actor.get("name"), raw.get("user_name"), raw.get("actor_name")),
        auth_type=_first(raw.get("authentication_type"), raw.get("auth_type")),
        reason_code=_as_int(raw.get("reason_code")),
        extra=extra if isinstance(extra, dict) else None,
    )


_DECODERS: Dict[PayloadShape, Callable[[Dict[str, Any]], NormalizedEvent]] = {
    PayloadShape.DIRECT: _decode_direct,
    PayloadShape.ALARM: _decode_alarm,
    PayloadShape.GENERIC: _decode_generic,
}


def normalize_event(raw: Any) -> Optional[NormalizedEvent]:
    """Map any supported payload to a `NormalizedEvent`.

    Returns None when the payload matches no known shape; callers ignore
    those silently.
    """
    shape = detect_shape(raw)
    decoder = _DECODERS.get(shape)
    if decoder is None:
        return None
    return decoder(raw)


def unwrap_log_event(event: NormalizedEvent) -> Optional[NormalizedEvent]:
    """Extract the real event from a socket-push `access.logs.add` wrapper.

    The nested `_source` names the door through a typed `target` array and
    the actor through `display_name`; both are mapped onto the usual fields.
    """
    source = event.source
    if not source:
        return None

    inner = _as_dict(source.get("event"))
    inner_type = _as_str(inner.get("type"))
    if not inner_type:
        return None

    actor = _as_dict(source.get("actor"))

    # Door name comes from the first target tagged as a door
    location_name = None
    location_id = None
    targets = source.get("target")
    if isinstance(targets, list):
        for target in targets:
            target = _as_dict(target)
            if target.get("type") == "door":
                location_name = _as_str(target.get("display_name"))
                location_id = _as_str(target.get("id"))
                break

    extra = source.get("extra")
    return NormalizedEvent(
        type=inner_type,
        event_object_id=event.event_object_id,
        location_id=location_id,
        location_name=location_name,
        actor_id=_as_str(actor.get("id")),
        actor_name=_as_str(actor.get("display_name")),
        actor_type=_as_str(actor.get("type")),
        result=_as_str(inner.get("result")),
        reason_code=_as_int(inner.get("reason_code")),
        extra=extra if isinstance(extra, dict) else None,
    )


def describe_reason_code(code: Optional[int]) -> str:
    if code is None:
        return "reason_code=None"
    return REASON_CODE_DESCRIPTIONS.get(code, f"reason_code={code}")

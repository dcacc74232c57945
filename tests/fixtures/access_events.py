from __future__ import annotations

from typing import Any, Dict, List, Optional


def door_unlock(
    *,
    location: Optional[str] = "Front Door",
    actor_id: Optional[str] = "user-1",
    actor_name: str = "Alice Example",
    event_id: str = "evt-1",
    extra: Optional[Dict[str, Any]] = None,
    policy_name: str = "",
) -> Dict[str, Any]:
    obj: Dict[str, Any] = {
        "authentication_type": "NFC",
        "policy_id": "",
        "policy_name": policy_name,
        "result": "Access Granted",
    }
    if extra is not None:
        obj["extra"] = extra
    data: Dict[str, Any] = {
        "location": {"id": "loc-1", "location_type": "door", "name": location} if location else {},
        "device": {"name": "Front Reader", "device_type": "UA-G2-PRO", "id": "dev-1"},
        "actor": {"id": actor_id, "name": actor_name, "type": "user"} if actor_id else None,
        "object": obj,
    }
    return {"event": "access.door.unlock", "event_object_id": event_id, "data": data}


def doorbell_completed(
    *,
    reason_code: int = 107,
    location: str = "Front Door",
    device_name: Optional[str] = "Office Viewer",
    actor_id: Optional[str] = None,
    host_device_mac: Optional[str] = None,
    event_id: str = "evt-bell-1",
) -> Dict[str, Any]:
    obj: Dict[str, Any] = {
        "authentication_type": "CALL",
        "result": "Access Granted" if reason_code == 107 else "Access Denied",
        "reason_code": reason_code,
    }
    if host_device_mac:
        obj["host_device_mac"] = host_device_mac
    return {
        "event": "access.doorbell.completed",
        "event_object_id": event_id,
        "data": {
            "location": {"id": "loc-1", "location_type": "door", "name": location},
            "device": {"name": device_name, "device_type": "UA-Viewer"} if device_name else {},
            "actor": {"id": actor_id, "name": "Front Desk", "type": "user"} if actor_id else None,
            "object": obj,
        },
    }


def doorbell_incoming(*, location: str = "Front Door") -> Dict[str, Any]:
    return {
        "event": "access.doorbell.incoming",
        "event_object_id": "evt-ring-1",
        "data": {
            "location": {"id": "loc-1", "name": location},
            "device": {"name": "Front Intercom"},
            "object": {},
        },
    }


def alarm(*, name: str = "Front Door", trigger_keys: Optional[List[str]] = None) -> Dict[str, Any]:
    keys = trigger_keys if trigger_keys is not None else ["door_unlocked_event"]
    return {
        "alarm": {
            "name": name,
            "triggers": [{"key": key, "device": "dev-1"} for key in keys],
            "sources": [{"device": "dev-1", "type": "include"}],
        }
    }


def generic(**fields: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"type": "access.door.unlock"}
    payload.update(fields)
    return payload


def log_wrapper(
    *,
    inner_type: str = "access.door.unlock",
    door_name: str = "Front Door",
    actor_id: str = "user-1",
    actor_name: str = "Alice Example",
    extra: Optional[Dict[str, Any]] = None,
    reason_code: Optional[int] = None,
) -> Dict[str, Any]:
    event: Dict[str, Any] = {"type": inner_type, "result": "ACCESS"}
    if reason_code is not None:
        event["reason_code"] = reason_code
    source: Dict[str, Any] = {
        "actor": {"id": actor_id, "display_name": actor_name, "type": "user"},
        "event": event,
        "target": [
            {"type": "UAH", "id": "hub-1", "display_name": "Hub"},
            {"type": "door", "id": "door-1", "display_name": door_name},
        ],
    }
    if extra is not None:
        source["extra"] = extra
    return {"event": "access.logs.add", "event_object_id": "log-1", "data": {"_source": source}}

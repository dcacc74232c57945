from __future__ import annotations

import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .enums import EventType


class SimulatedEventRequest(BaseModel):
    """Synthetic event accepted by `POST /test/event`.

    The request is turned into a direct-webhook payload and fed through the
    same `handle_event` path as controller traffic.

    Examples:
        Badge-in:
            {"user_id": "u-1", "location": "Main Entrance"}

        Doorbell answered from a viewer:
            {
              "event_type": "access.doorbell.completed",
              "location": "Main Entrance",
              "reason_code": 107,
              "device_name": "Office Viewer"
            }
    """

    user_id: Optional[str] = None
    user_name: Optional[str] = None
    location: str = Field(min_length=1)
    event_type: str = EventType.DOOR_UNLOCK.value
    reason_code: Optional[int] = None
    device_name: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        stamp = int(time.time() * 1000)
        is_doorbell = self.event_type == EventType.DOORBELL_COMPLETED.value
        actor = None
        if self.user_id:
            actor = {"id": self.user_id, "name": self.user_name or "Test User", "type": "user"}
        obj: Dict[str, Any] = {
            "authentication_type": "CALL" if is_doorbell else "NFC",
            "policy_id": "",
            "policy_name": "",
            "result": "Access Granted",
        }
        if self.reason_code is not None:
            obj["reason_code"] = self.reason_code
        return {
            "event": self.event_type,
            "event_object_id": f"test-{stamp}",
            "data": {
                "location": {"id": f"test-loc-{stamp}", "location_type": "door", "name": self.location},
                "device": {"name": self.device_name or "Test Device", "device_type": "TEST"},
                "actor": actor,
                "object": obj,
            },
        }


class SimulatedEventResponse(BaseModel):
    status: str = "ok"
    simulated_event: str


class WebhookAck(BaseModel):
    status: str = "ok"


class SyncResponse(BaseModel):
    status: str = "synced"
    users_mapped: int


class ConfigSaveResponse(BaseModel):
    status: str = "saved"
    note: str

from __future__ import annotations

from enum import Enum, IntEnum


class EventType(str, Enum):
    """Event tags the rules engine knows how to route.

    The access controller names its events with dotted strings. Generic
    payloads may carry arbitrary other tags; those stay plain strings on
    `NormalizedEvent.type` and are reported as unhandled.

    - DOOR_UNLOCK: NFC/PIN/face authentication at a reader
    - DOORBELL_COMPLETED: an intercom call finished (see `DoorbellReasonCode`)
    - DOORBELL_INCOMING: a visitor pressed the doorbell
    - LOG_WRAPPER: socket-push envelope nesting one of the above under `_source`
    - ALARM_UNKNOWN: alarm-rule payload whose triggers matched nothing known
    """

    DOOR_UNLOCK = "access.door.unlock"
    DOORBELL_COMPLETED = "access.doorbell.completed"
    DOORBELL_INCOMING = "access.doorbell.incoming"
    LOG_WRAPPER = "access.logs.add"
    ALARM_UNKNOWN = "alarm_manager.unknown"


class PayloadShape(str, Enum):
    """Inbound payload layouts, listed in detection priority order.

    - DIRECT: API webhook / direct envelope, `{"event": ..., "data": {...}}`
    - ALARM: legacy Alarm Manager envelope, `{"alarm": {"triggers": [...]}}`
    - GENERIC: flat best-effort shape with top-level `type` or `event_type`
    - UNRECOGNIZED: none of the above; the payload is ignored
    """

    DIRECT = "direct"
    ALARM = "alarm"
    GENERIC = "generic"
    UNRECOGNIZED = "unrecognized"


class DoorbellReasonCode(IntEnum):
    """Outcome codes carried by `access.doorbell.completed` events."""

    TIMED_OUT = 105
    DECLINED = 106
    ADMIN_UNLOCKED = 107
    VISITOR_CANCELED = 108
    ANSWERED_ELSEWHERE = 400


class ResolverStrategy(str, Enum):
    """Named group resolution strategies accepted in `resolver.strategy_order`."""

    API_GROUP = "api_group"
    MANUAL = "manual"
    # Upstream always sends an empty policy_name today; kept for future firmware.
    POLICY_NAME = "policy_name"


class EventSourceMode(str, Enum):
    ALARM_MANAGER = "alarm_manager"
    API_WEBHOOK = "api_webhook"
    WEBSOCKET = "websocket"

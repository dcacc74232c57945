"""Core types for the access orchestrator.

This package centralizes enums, event models, rule/config models, results
and collaborator protocols. Most modules should import types from here
rather than directly from submodules.

Usage:
    from orchestrator.types import NormalizedEvent, RuleEntry, DoorController
"""

from .api import (
    ConfigSaveResponse,
    SimulatedEventRequest,
    SimulatedEventResponse,
    SyncResponse,
    WebhookAck,
)
from .config import (
    ApiWebhookConfig,
    ControllerConfig,
    EventSourceConfig,
    OrchestratorConfig,
    ServerSection,
)
from .enums import DoorbellReasonCode, EventSourceMode, EventType, PayloadShape, ResolverStrategy
from .events import NormalizedEvent, ProcessedEvent
from .protocols import DoorController, EventObserver, GroupLookup
from .results import (
    DirectoryUser,
    EngineStats,
    LastEvent,
    LastUnlock,
    ResolvedGroup,
    RuleMatch,
    UnlockResult,
    WebhookRegistration,
)
from .rules import (
    DefaultAction,
    DoorbellRulesConfig,
    GroupAction,
    ResolverConfig,
    RuleEntry,
    RuleSetConfig,
    SelfTriggerConfig,
)

__all__ = [
    "EventType",
    "PayloadShape",
    "DoorbellReasonCode",
    "ResolverStrategy",
    "EventSourceMode",
    "NormalizedEvent",
    "ProcessedEvent",
    "RuleEntry",
    "RuleSetConfig",
    "DoorbellRulesConfig",
    "GroupAction",
    "DefaultAction",
    "ResolverConfig",
    "SelfTriggerConfig",
    "ControllerConfig",
    "ApiWebhookConfig",
    "EventSourceConfig",
    "ServerSection",
    "OrchestratorConfig",
    "UnlockResult",
    "ResolvedGroup",
    "RuleMatch",
    "EngineStats",
    "LastEvent",
    "LastUnlock",
    "DirectoryUser",
    "WebhookRegistration",
    "DoorController",
    "GroupLookup",
    "EventObserver",
    "SimulatedEventRequest",
    "SimulatedEventResponse",
    "WebhookAck",
    "SyncResponse",
    "ConfigSaveResponse",
]

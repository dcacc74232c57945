from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import EventSourceMode
from .rules import DoorbellRulesConfig, ResolverConfig, RuleSetConfig, SelfTriggerConfig


class ControllerConfig(BaseModel):
    """Connection settings for the UniFi Access developer API."""

    host: str = ""
    port: int = 12445
    token: str = ""
    verify_ssl: bool = False
    user_sync_interval_minutes: float = 5

    @property
    def base_url(self) -> str:
        return f"https://{self.host}:{self.port}/api/v1/developer"


class ApiWebhookConfig(BaseModel):
    secret: Optional[str] = None
    endpoint_url: Optional[str] = None
    endpoint_name: str = "access-orchestrator"
    events: List[str] = Field(
        default_factory=lambda: [
            "access.door.unlock",
            "access.doorbell.incoming",
            "access.doorbell.completed",
        ]
    )


class WebsocketConfig(BaseModel):
    reconnect_interval_seconds: float = 5


class EventSourceConfig(BaseModel):
    mode: EventSourceMode = EventSourceMode.ALARM_MANAGER
    api_webhook: Optional[ApiWebhookConfig] = None
    websocket: WebsocketConfig = Field(default_factory=WebsocketConfig)


class ServerSection(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    admin_api_key: Optional[str] = None


class OrchestratorConfig(BaseModel):
    """Whole orchestrator configuration file.

    Unknown top-level keys are kept so that saving the file back does not
    drop sections this service does not interpret.
    """

    model_config = ConfigDict(extra="allow")

    unifi: ControllerConfig = Field(default_factory=ControllerConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    unlock_rules: RuleSetConfig = Field(default_factory=RuleSetConfig)
    doorbell_rules: DoorbellRulesConfig = Field(default_factory=DoorbellRulesConfig)
    self_trigger_prevention: SelfTriggerConfig = Field(default_factory=SelfTriggerConfig)
    event_source: EventSourceConfig = Field(default_factory=EventSourceConfig)
    server: ServerSection = Field(default_factory=ServerSection)
    doors: Dict[str, str] = Field(default_factory=dict)
    logging: Dict[str, Any] = Field(default_factory=dict)

"""Runtime wiring for the orchestrator.

Owns the config and the component graph built from it (controller client,
group directory, resolver, rules engine) plus the event history, which
outlives reloads. A reload builds a fresh graph: new rule tables, new
stats, new sync timer.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from orchestrator.adapters.unifi import AccessClient
from orchestrator.adapters.unifi_push import NotificationListener
from orchestrator.config import load_config
from orchestrator.errors import AccessApiError, ConfigError
from orchestrator.types import (
    EventSourceMode,
    OrchestratorConfig,
    ProcessedEvent,
)

from .directory import GroupDirectory
from .event_history import EventHistory
from .resolver import GroupResolver
from .rules_engine import RulesEngine

logger = logging.getLogger(__name__)


class Orchestrator:
    def __init__(
        self,
        config: OrchestratorConfig,
        config_path: Optional[Path] = None,
        history: Optional[EventHistory] = None,
    ) -> None:
        self.config_path = Path(config_path) if config_path else None
        self.history = history or EventHistory()
        self.listener: Optional[NotificationListener] = None
        self._started_monotonic = time.monotonic()
        self._build(config)

    @classmethod
    def from_file(cls, config_path: Path) -> "Orchestrator":
        return cls(load_config(config_path), config_path=config_path)

    def _build(self, config: OrchestratorConfig) -> None:
        self.config = config
        self.client = AccessClient(
            config.unifi,
            self_trigger=config.self_trigger_prevention,
            static_doors=config.doors,
        )
        self.directory = GroupDirectory(config.resolver.unifi_group_to_group)
        self.resolver = GroupResolver(config.resolver, self.directory)
        self.engine = RulesEngine(config, self.client, self.resolver, observers=[self.history])

    async def initialize(self) -> bool:
        """Discover doors, load group membership and start the sync timer."""
        logger.info("Initializing UniFi Access client...")
        try:
            await self.client.discover_doors()
        except (AccessApiError, httpx.HTTPError) as e:
            logger.error(f"Initialization failed: {e}")
            return False
        await self.directory.sync(self.client)
        self.directory.start_periodic_sync(self.client, self.config.unifi.user_sync_interval_minutes)
        logger.info("UniFi Access client initialized successfully")
        return True

    async def start(self) -> None:
        mode = self.config.event_source.mode
        logger.info(f"Event source mode: {mode.value}")

        if not await self.initialize():
            logger.error(
                "UniFi client initialization failed. Server will start but unlocks will fail "
                "until connectivity is restored."
            )

        if mode == EventSourceMode.API_WEBHOOK:
            webhook = self.config.event_source.api_webhook
            if webhook is None or not webhook.endpoint_url:
                logger.warning("api_webhook mode without event_source.api_webhook.endpoint_url")
                return
            result = await self.client.register_webhook_endpoint(webhook)
            if result.success:
                logger.info(
                    f"API webhook {'already registered' if result.existing else 'registered successfully'}"
                )
            else:
                logger.error(f"API webhook registration failed: {result.error}")
        elif mode == EventSourceMode.WEBSOCKET:
            self.start_listener()

    def start_listener(self) -> None:
        """Open the controller's socket-push stream and feed it to the engine."""
        self.listener = NotificationListener(
            self.config.unifi,
            self.submit_raw_event,
            reconnect_seconds=self.config.event_source.websocket.reconnect_interval_seconds,
        )
        self.listener.start()

    async def reload(self) -> None:
        """Re-read the config file and rebuild every component.

        Delayed unlocks scheduled by the previous engine are left to run.
        """
        if self.config_path is None:
            raise ConfigError("No config file to reload from")
        logger.info("Config reload requested")
        new_config = load_config(self.config_path)
        self.shutdown()
        self._build(new_config)
        await self.initialize()
        if new_config.event_source.mode == EventSourceMode.WEBSOCKET:
            self.start_listener()
        logger.info("Config reloaded successfully")

    def shutdown(self) -> None:
        self.directory.stop()
        if self.listener is not None:
            self.listener.stop()
            self.listener = None
        logger.info("UniFi client shut down")

    async def submit_raw_event(self, payload: Any) -> Optional[ProcessedEvent]:
        return await self.engine.handle_event(payload)

    async def sync_users(self) -> int:
        await self.directory.sync(self.client)
        return self.directory.user_count

    def record_system_event(self, event_type: str, action: str, success: bool = True, **fields: Any) -> None:
        stamp = int(time.time() * 1000)
        self.history.record(
            ProcessedEvent(
                id=f"{event_type}-{stamp}",
                timestamp=datetime.now(timezone.utc).isoformat(),
                type=event_type,
                actor=fields.pop("actor", "GUI Admin"),
                location=fields.pop("location", "-"),
                action=action,
                success=success,
                **fields,
            )
        )

    def health(self) -> Dict[str, Any]:
        status = self.client.get_status()
        status["users_mapped"] = self.directory.user_count
        status["websocket_connected"] = self.listener is not None and self.listener.connected
        return {
            "status": "running",
            "uptime_seconds": int(time.monotonic() - self._started_monotonic),
            "event_source": self.config.event_source.mode.value,
            "unifi": status,
            "engine": self.engine.get_stats().model_dump(),
        }


_orchestrator: Optional[Orchestrator] = None


def get_orchestrator() -> Orchestrator:
    """Get or create the process-wide orchestrator.

    Returns:
        Orchestrator built from the config file named in the server settings
    """
    global _orchestrator
    if _orchestrator is None:
        from server.config import get_settings

        _orchestrator = Orchestrator.from_file(Path(get_settings().config_path))
    return _orchestrator

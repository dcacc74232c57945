from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import httpx

from orchestrator.errors import AccessApiError
from orchestrator.types import (
    ApiWebhookConfig,
    ControllerConfig,
    DoorController,
    SelfTriggerConfig,
    UnlockResult,
    WebhookRegistration,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10.0
MAX_PAGES = 100
ACTOR_ID = "unifi-access-orchestrator"
ACTOR_NAME = "Access Orchestrator"


class AccessClient(DoorController):
    """UniFi Access developer API adapter implementing `DoorController`.

    Discovers doors, sends remote unlocks, reads user groups for the
    directory and registers the webhook endpoint. Every unlock carries the
    self-trigger marker in `extra` so its echo can be dropped.

    Endpoints (base `https://{host}:{port}/api/v1/developer`):
        GET  /doors
        PUT  /doors/:id/unlock
        GET  /user_groups
        GET  /user_groups/:id/users/all
        GET  /webhooks/endpoints
        POST /webhooks/endpoints
    """

    def __init__(
        self,
        config: ControllerConfig,
        self_trigger: Optional[SelfTriggerConfig] = None,
        static_doors: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.config = config
        self.base_url = config.base_url
        self.self_trigger = self_trigger or SelfTriggerConfig()
        # Door name -> id; replaced wholesale by discovery
        self.doors: Dict[str, str] = dict(static_doors or {})
        self.doors_by_id: Dict[str, str] = {v: k for k, v in self.doors.items()}

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def endpoint(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def request(
        self, method: str, path: str, body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Call the API and return the parsed envelope.

        Raises `AccessApiError` unless the envelope's `code` is SUCCESS;
        transport failures surface as `httpx.HTTPError`.
        """
        async with httpx.AsyncClient(
            timeout=REQUEST_TIMEOUT_SECONDS, verify=self.config.verify_ssl
        ) as client:
            response = await client.request(
                method, self.endpoint(path), headers=self._headers(), json=body
            )
        try:
            parsed = response.json()
        except ValueError:
            raise AccessApiError(
                f"Failed to parse response from {method} {path}: {response.text[:200]}"
            )
        if not isinstance(parsed, dict) or parsed.get("code") != "SUCCESS":
            code = parsed.get("code") if isinstance(parsed, dict) else None
            msg = parsed.get("msg") if isinstance(parsed, dict) else None
            raise AccessApiError(f"API error: {code} - {msg}")
        return parsed

    async def request_all_pages(self, path: str, page_size: int = 25) -> List[Dict[str, Any]]:
        """GET every page of a paginated listing (`page_num` / `page_size`)."""
        items: List[Dict[str, Any]] = []
        separator = "&" if "?" in path else "?"
        for page in range(1, MAX_PAGES + 1):
            result = await self.request(
                "GET", f"{path}{separator}page_num={page}&page_size={page_size}"
            )
            data = result.get("data")
            batch = data if isinstance(data, list) else []
            items.extend(batch)
            if len(batch) < page_size:
                return items
        logger.warning(f"Pagination safety cap reached on {path}")
        return items

    # Doors

    async def discover_doors(self) -> Dict[str, str]:
        logger.info("Discovering doors...")
        result = await self.request("GET", "/doors")
        data = result.get("data")
        doors: Dict[str, str] = {}
        for door in data if isinstance(data, list) else []:
            name = door.get("name") or door.get("full_name")
            door_id = door.get("id")
            if name and door_id:
                doors[name] = door_id
                logger.debug(f"Door discovered: \"{name}\" -> {door_id}")

        self.doors = doors
        self.doors_by_id = {v: k for k, v in doors.items()}
        logger.info(f"Discovered {len(doors)} doors: {', '.join(doors)}")
        return doors

    def _unlock_body(self, reason: str) -> Dict[str, Any]:
        extra: Dict[str, Any] = {}
        if self.self_trigger.enabled:
            extra[self.self_trigger.marker_key] = self.self_trigger.marker_value
        extra["reason"] = reason
        extra["timestamp"] = datetime.now(timezone.utc).isoformat()
        return {"actor_id": ACTOR_ID, "actor_name": ACTOR_NAME, "extra": extra}

    async def unlock_door(self, door_id: str, reason: str = "middleware") -> UnlockResult:
        door_name = self.doors_by_id.get(door_id, door_id)
        logger.info(f"Unlocking door: \"{door_name}\" ({door_id}) - reason: {reason}")
        try:
            await self.request("PUT", f"/doors/{door_id}/unlock", self._unlock_body(reason))
        except (AccessApiError, httpx.HTTPError) as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"Failed to unlock door \"{door_name}\": {error}")
            return UnlockResult(success=False, door=door_name, door_id=door_id, error=error)
        logger.info(f"Door unlocked successfully: \"{door_name}\"")
        return UnlockResult(success=True, door=door_name, door_id=door_id)

    async def unlock_door_by_name(self, door_name: str, reason: str = "middleware") -> UnlockResult:  # type: ignore[override]
        door_id = self.doors.get(door_name)
        if not door_id:
            logger.error(f"Door not found: \"{door_name}\". Known doors: {', '.join(self.doors)}")
            return UnlockResult(
                success=False, door=door_name, error="Door ID not found in config or discovery"
            )
        return await self.unlock_door(door_id, reason)

    # User groups

    async def fetch_user_groups(self) -> List[Dict[str, Any]]:
        result = await self.request("GET", "/user_groups")
        data = result.get("data")
        return [g for g in data if isinstance(g, dict)] if isinstance(data, list) else []

    async def fetch_group_members(self, group_id: str) -> List[Dict[str, Any]]:
        # /users/all includes members of subgroups
        result = await self.request("GET", f"/user_groups/{group_id}/users/all")
        data = result.get("data")
        return [u for u in data if isinstance(u, dict)] if isinstance(data, list) else []

    # Webhook registration

    async def register_webhook_endpoint(self, webhook: ApiWebhookConfig) -> WebhookRegistration:
        """Register our webhook URL with the controller unless already present."""
        logger.info("Registering API webhook endpoint...")
        try:
            existing = await self.request("GET", "/webhooks/endpoints")
            endpoints = existing.get("data") if isinstance(existing.get("data"), list) else []
            for ep in endpoints:
                if isinstance(ep, dict) and ep.get("name") == webhook.endpoint_name:
                    logger.info(f"Webhook endpoint already registered: {ep.get('endpoint')} (id: {ep.get('id')})")
                    return WebhookRegistration(success=True, id=ep.get("id"), existing=True)
        except (AccessApiError, httpx.HTTPError) as e:
            logger.warning(f"Could not check existing webhooks: {e}")

        body = {
            "endpoint": webhook.endpoint_url,
            "name": webhook.endpoint_name,
            "events": webhook.events,
        }
        try:
            result = await self.request("POST", "/webhooks/endpoints", body)
        except (AccessApiError, httpx.HTTPError) as e:
            logger.error(f"Webhook registration failed: {e}")
            return WebhookRegistration(success=False, error=str(e))
        logger.info(f"Webhook endpoint registered: {webhook.endpoint_url}")
        data = result.get("data")
        return WebhookRegistration(success=True, data=data if isinstance(data, dict) else None)

    def get_status(self) -> Dict[str, Any]:
        return {
            "host": self.config.host,
            "port": self.config.port,
            "doors_discovered": len(self.doors),
            "doors": dict(self.doors),
        }

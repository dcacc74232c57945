"""Operator endpoints: manual unlocks, simulated events, config and live feed.

All routes require the `x-api-key` header when `server.admin_api_key` is set
in the orchestrator config.
"""

from __future__ import annotations

import asyncio
import hmac
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from orchestrator.config import merge_config_updates, read_config_file, sanitize_config, save_config
from orchestrator.errors import ConfigError
from orchestrator.services.runtime import Orchestrator, get_orchestrator
from orchestrator.types import (
    ConfigSaveResponse,
    OrchestratorConfig,
    ProcessedEvent,
    SimulatedEventRequest,
    SimulatedEventResponse,
    SyncResponse,
    UnlockResult,
)

logger = logging.getLogger(__name__)

SSE_KEEPALIVE_SECONDS = 15.0


def require_admin_api_key(
    orchestrator: Orchestrator = Depends(get_orchestrator),
    x_api_key: Optional[str] = Header(default=None, alias="x-api-key"),
) -> None:
    expected = orchestrator.config.server.admin_api_key
    if expected and not hmac.compare_digest((x_api_key or "").encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


router = APIRouter(tags=["admin"], dependencies=[Depends(require_admin_api_key)])


@router.post("/test/unlock/{door}")
async def test_unlock(door: str, orchestrator: Orchestrator = Depends(get_orchestrator)) -> UnlockResult:
    logger.info(f"Manual test unlock requested for: {door}")
    result = await orchestrator.client.unlock_door_by_name(door, reason="manual test")
    orchestrator.record_system_event(
        "test.unlock",
        f"Test unlock: {door}" if result.success else f"Test unlock failed: {door}",
        success=result.success,
        location=door,
    )
    return result


@router.post("/test/event")
async def test_event(
    request: SimulatedEventRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> SimulatedEventResponse:
    """Inject a synthetic event through the normal processing path."""
    payload = request.to_payload()
    logger.info(f"Simulated event: {request.event_type} at {request.location}")
    await orchestrator.submit_raw_event(payload)
    return SimulatedEventResponse(simulated_event=payload["event"])


@router.post("/reload")
async def reload_config(orchestrator: Orchestrator = Depends(get_orchestrator)) -> Dict[str, str]:
    try:
        await orchestrator.reload()
    except ConfigError as e:
        logger.error(f"Config reload failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    orchestrator.record_system_event("config.reloaded", "Config reloaded")
    return {"status": "reloaded"}


@router.get("/api/config")
async def get_config(orchestrator: Orchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    return sanitize_config(orchestrator.config)


@router.put("/api/config")
async def put_config(
    updates: Dict[str, Any] = Body(...),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> ConfigSaveResponse:
    """Merge `updates` into the config file, validate, save and reload.

    Only the top-level sections in `orchestrator.config.SAFE_KEYS` are applied.
    """
    if orchestrator.config_path is None:
        raise HTTPException(status_code=400, detail="No config file to save to")
    try:
        current = read_config_file(orchestrator.config_path)
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))

    merged = merge_config_updates(current, updates)
    try:
        OrchestratorConfig.model_validate(merged)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid config: {e.errors()[0].get('msg')}")

    save_config(orchestrator.config_path, merged)
    logger.info("Config saved from admin API")
    try:
        await orchestrator.reload()
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))
    orchestrator.record_system_event("config.saved", "Config saved and reloaded")
    return ConfigSaveResponse(note="Config saved and reloaded")


@router.get("/api/doors")
async def list_doors(orchestrator: Orchestrator = Depends(get_orchestrator)) -> List[Dict[str, str]]:
    return [{"name": name, "id": door_id} for name, door_id in orchestrator.client.doors.items()]


@router.get("/api/users")
async def list_users(orchestrator: Orchestrator = Depends(get_orchestrator)) -> List[Dict[str, str]]:
    return orchestrator.directory.users()


@router.get("/api/groups/discovered")
async def discovered_groups(orchestrator: Orchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    return {
        "groups": orchestrator.directory.discovered_groups(),
        "users": [user.model_dump() for user in orchestrator.directory.discovered_users()],
    }


@router.post("/api/sync")
async def sync_users(orchestrator: Orchestrator = Depends(get_orchestrator)) -> SyncResponse:
    users_mapped = await orchestrator.sync_users()
    orchestrator.record_system_event("user.sync", f"User sync: {users_mapped} users mapped")
    return SyncResponse(users_mapped=users_mapped)


@router.get("/api/events/history")
async def event_history(
    limit: int = Query(default=50, ge=1, le=200),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> List[ProcessedEvent]:
    return orchestrator.history.recent(limit)


def format_sse(event: ProcessedEvent) -> str:
    return f"data: {json.dumps(event.model_dump(mode='json'))}\n\n"


async def _stream_events(request: Request, orchestrator: Orchestrator) -> AsyncIterator[str]:
    queue = orchestrator.history.subscribe()
    try:
        yield ": connected\n\n"
        while not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=SSE_KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield format_sse(event)
    finally:
        orchestrator.history.unsubscribe(queue)


@router.get("/api/events/stream")
async def event_stream(request: Request, orchestrator: Orchestrator = Depends(get_orchestrator)) -> StreamingResponse:
    """Server-sent events feed of processed events."""
    return StreamingResponse(
        _stream_events(request, orchestrator),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

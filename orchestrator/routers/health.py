from __future__ import annotations

from fastapi import APIRouter, Depends

from orchestrator.services.runtime import Orchestrator, get_orchestrator
from server.config import Settings, get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(
    orchestrator: Orchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Return service health, controller status and engine stats."""
    body = orchestrator.health()
    body["version"] = settings.app_version
    return body


@router.get("/healthz")
async def healthz() -> dict:
    """Liveness probe that does not touch the orchestrator."""
    return {"status": "ok"}

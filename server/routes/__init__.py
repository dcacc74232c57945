"""Router aggregation."""

from __future__ import annotations

from fastapi import APIRouter

from orchestrator.routers import admin as admin_router_module
from orchestrator.routers import health as health_router_module
from orchestrator.routers import webhooks as webhooks_router_module

# Controller webhooks and the dashboard expect unprefixed paths
api_router = APIRouter()

api_router.include_router(health_router_module.router)
api_router.include_router(webhooks_router_module.router)
api_router.include_router(admin_router_module.router)

__all__ = ["api_router"]

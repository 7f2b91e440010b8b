# src/aurumfox/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from aurumfox.api.routes_public_parts.dao import router as dao_router
from aurumfox.api.routes_public_parts.health import router as health_router
from aurumfox.api.routes_public_parts.metrics import router as metrics_router
from aurumfox.api.routes_public_parts.staking import router as staking_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(staking_router, prefix="/v1", tags=["staking"])
public_router.include_router(dao_router, prefix="/v1", tags=["dao"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])

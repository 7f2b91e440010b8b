# src/aurumfox/api/routes_public_parts/metrics.py
from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from aurumfox.runtime.metrics import format_prometheus, metrics_enabled

router = APIRouter()

_PROM_CONTENT_TYPE = "text/plain; version=0.0.4"


@router.get("/metrics", response_class=PlainTextResponse)
def v1_metrics() -> PlainTextResponse:
    """Counters and gauges in Prometheus text format; 404 unless AFOX_METRICS_ENABLED=1."""
    if not metrics_enabled():
        return PlainTextResponse("not_found\n", status_code=404)
    return PlainTextResponse(format_prometheus(), media_type=_PROM_CONTENT_TYPE)

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aurumfox.api.config import load_api_config
from aurumfox.api.errors import ApiError, api_error_from_core
from aurumfox.api.routes_public import public_router
from aurumfox.api.security import RequestSizeLimitMiddleware
from aurumfox.api.structured_logging import RequestLogMiddleware, configure_structured_logging
from aurumfox.runtime.errors import CoreError
from aurumfox.runtime.executor_boot import build_executor as _build_executor
from aurumfox.runtime.metrics import inc_counter
from aurumfox.runtime.sweep_loop import ProposalSweepLoop, sweep_loop_config_from_env

log = logging.getLogger("aurumfox.api")


def build_executor():
    """Build an AurumExecutor for API runtime.

    Tests monkeypatch `aurumfox.api.app.build_executor` to inject an
    executor over an in-memory store and a fake clock.
    """
    return _build_executor()


def _truthy(v: str | None) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _validation_fields(exc: RequestValidationError) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        key = ".".join(loc) or "body"
        out.setdefault(key, str(err.get("msg") or "invalid"))
    return out


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(CoreError)
    async def _core_error(request: Request, exc: CoreError) -> JSONResponse:
        err = api_error_from_core(exc)
        inc_counter(f"api_error_{exc.code}_total", 1)
        if err.status_code >= 500:
            log.error("core error path=%s code=%s reason=%s", request.url.path, exc.code, exc.reason)
        return JSONResponse(status_code=err.status_code, content=err.to_payload())

    @app.exception_handler(RequestValidationError)
    async def _request_validation(_request: Request, exc: RequestValidationError) -> JSONResponse:
        err = ApiError.bad_request(
            "validation_error",
            "Request missing required fields or has invalid field types.",
            {"fields": _validation_fields(exc)},
        )
        return JSONResponse(status_code=err.status_code, content=err.to_payload())


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load config and attach an executor via build_executor()
      - False: keep lightweight for unit tests / import-time validation
    """
    configure_structured_logging()
    cfg = load_api_config()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        """Start/stop the DAO sweep loop when AFOX_DAO_SWEEP_AUTOSTART is set."""
        loop = None
        ex = getattr(app.state, "executor", None)
        if ex is not None and _truthy(os.environ.get("AFOX_DAO_SWEEP_AUTOSTART")):
            try:
                ex_cfg = getattr(ex, "cfg", None)
                interval = getattr(ex_cfg, "sweep_interval_ms", None)
                loop = ProposalSweepLoop(executor=ex, cfg=sweep_loop_config_from_env(interval_ms=interval))
                if not loop.start():
                    loop = None
            except Exception:
                # Startup continues without the loop; health exposes it as not running.
                log.exception("sweep loop failed to start")
                loop = None

        app.state.sweep_loop = loop
        yield
        if loop is not None:
            loop.stop()

    if cfg.mode == "prod":
        app = FastAPI(
            title="AurumFox Core API",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="AurumFox Core API", lifespan=_lifespan)

    if boot_runtime:
        ex = build_executor()
        ex_cfg = getattr(ex, "cfg", None)
        if bool(getattr(ex_cfg, "require_signatures", False)) and not cfg.require_signatures:
            cfg = replace(cfg, require_signatures=True)
        app.state.executor = ex
    else:
        app.state.executor = None

    app.state.cfg = cfg
    app.state.sweep_loop = None

    _install_error_handlers(app)

    # --- Middleware ---
    # Added last runs first: size limit, then request logging, then CORS.
    cors_origins: List[str] = cfg.cors_origins
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials="*" not in cors_origins,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "X-Request-Id"],
        )
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=cfg.max_request_bytes)

    app.include_router(public_router)

    log.info("api ready mode=%s runtime=%s signatures=%s", cfg.mode, boot_runtime, cfg.require_signatures)
    return app


__all__ = ["build_executor", "create_app"]

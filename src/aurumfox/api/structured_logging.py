# src/aurumfox/api/structured_logging.py
from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Dict, Optional, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from aurumfox.runtime.event_log import log_event

Json = Dict[str, Any]

_CONFIGURED_ATTR = "_afox_configured"
_FALSY = {"0", "false", "no", "n", "off"}

# Probes hit these every few seconds; they are only logged on failure.
_QUIET_PATHS: Tuple[str, ...] = ("/v1/health", "/v1/readyz", "/v1/metrics")


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Route all stdlib logging to stderr as one JSON line per record.

    Level comes from `level_name`, else AFOX_LOG_LEVEL, else INFO.
    Repeated calls only adjust the level.
    """
    name = (level_name or os.environ.get("AFOX_LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, _CONFIGURED_ATTR, False):
        return

    # Records are already JSON (see log_event), so the format is the message itself.
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.handlers = [handler]
    setattr(root, _CONFIGURED_ATTR, True)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` event per request, tagged with a request id.

    The id is taken from the caller's `x-request-id` header when present
    and echoed back on the response.

      AFOX_LOG_REQUESTS=0          disable
      AFOX_LOG_REQUEST_HEADERS=1   include user-agent / content-type / forwarded-for
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self._enabled = (os.environ.get("AFOX_LOG_REQUESTS") or "1").strip().lower() not in _FALSY
        self._with_headers = (os.environ.get("AFOX_LOG_REQUEST_HEADERS") or "").strip().lower() in {
            "1",
            "true",
            "yes",
            "y",
            "on",
        }
        self._log = logging.getLogger("aurumfox.http")

    def _headers(self, request: Request) -> Json:
        if not self._with_headers:
            return {}
        keys = ("user-agent", "content-type", "x-forwarded-for")
        return {k: request.headers[k] for k in keys if request.headers.get(k)}

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        if not self._enabled:
            return await call_next(request)

        t0 = time.perf_counter()
        response: Optional[Response] = None
        failure: Optional[str] = None
        try:
            response = await call_next(request)
        except Exception as e:
            failure = f"{type(e).__name__}: {e}"
            raise
        finally:
            status = response.status_code if response is not None else 500
            path = request.url.path
            if status >= 400 or not path.startswith(_QUIET_PATHS):
                log_event(
                    self._log,
                    "http_request",
                    request_id=request_id,
                    method=request.method,
                    path=path,
                    status=status,
                    duration_ms=round((time.perf_counter() - t0) * 1000.0, 2),
                    client=request.client.host if request.client else None,
                    headers=self._headers(request),
                    error=failure,
                )

        response.headers.setdefault("x-request-id", request_id)
        return response


__all__ = ["RequestLogMiddleware", "configure_structured_logging", "log_event"]

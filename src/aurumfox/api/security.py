from __future__ import annotations

import os
from typing import Any, Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from aurumfox.api.errors import ApiError
from aurumfox.crypto.wallet import canonical_action_message, verify_wallet_signature
from aurumfox.runtime.metrics import inc_counter


def _truthy(v: str | None) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return int(default)
    try:
        return int(str(raw).strip())
    except Exception:
        return int(default)


def signatures_required(request: Request) -> bool:
    cfg = getattr(request.app.state, "cfg", None)
    return bool(getattr(cfg, "require_signatures", False))


def require_wallet_signature(
    request: Request,
    *,
    action: str,
    wallet_address: str,
    fields: Dict[str, Any],
    signature: Optional[str],
) -> None:
    """Gate a mutating request behind the acting wallet's Ed25519 signature.

    No-op unless signatures are required by config. The client signs
    canonical_action_message(action, fields), where `fields` are the request
    body fields (camelCase) without `signature`.
    """
    if not signatures_required(request):
        return

    sig = (signature or "").strip()
    if not sig:
        inc_counter("api_signature_missing_total", 1)
        raise ApiError.unauthorized(
            "signature_missing",
            "Authentication required: missing wallet signature.",
            {"action": action},
        )

    msg = canonical_action_message(action, fields)
    if not verify_wallet_signature(wallet_address=wallet_address, message=msg, signature=sig):
        inc_counter("api_signature_invalid_total", 1)
        raise ApiError.forbidden(
            "signature_invalid",
            "Authentication failed: invalid wallet signature.",
            {"action": action, "wallet_address": wallet_address},
        )


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Fail-fast request size limiter.

    - Enforces Content-Length when present.
    - Also caps buffered body size by reading body once for mutating methods.

    Configure:
      AFOX_MAX_REQUEST_BYTES (default: 65536)
      AFOX_SIZE_LIMIT_DISABLE=1 to disable (only when enforced at the edge)
    """

    def __init__(
        self,
        app,
        *,
        max_bytes: Optional[int] = None,
        exempt_prefixes: Tuple[str, ...] = ("/docs", "/openapi.json", "/v1/health"),
    ):
        super().__init__(app)
        if _truthy(os.environ.get("AFOX_SIZE_LIMIT_DISABLE")):
            self._enabled = False
            self._max_bytes = 0
        else:
            self._enabled = True
            self._max_bytes = int(max_bytes) if max_bytes is not None else _env_int("AFOX_MAX_REQUEST_BYTES", 65_536)
        self._exempt_prefixes = exempt_prefixes

    def _too_large(self) -> JSONResponse:
        inc_counter("api_request_too_large_total", 1)
        return JSONResponse(
            status_code=413,
            content={
                "ok": False,
                "error": {"code": "request_too_large", "message": "Request body too large", "details": {}},
            },
        )

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        path = request.url.path or ""
        for ex in self._exempt_prefixes:
            if path.startswith(ex):
                return await call_next(request)

        cl = request.headers.get("content-length")
        if cl:
            try:
                if int(cl) > self._max_bytes:
                    return self._too_large()
            except ValueError:
                # Malformed header; fall back to the buffered body cap.
                pass

        # Chunked bodies carry no Content-Length; cap the actual bytes.
        if (request.method or "").upper() in {"POST", "PUT", "PATCH"}:
            body = await request.body()
            if body and len(body) > self._max_bytes:
                return self._too_large()

        return await call_next(request)

import os
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class ApiConfig:
    mode: str  # "dev" | "testnet" | "prod"
    cors_origins: List[str]
    max_request_bytes: int
    require_signatures: bool


def _is_truthy(v: str | None) -> bool:
    if v is None:
        return False
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_cors_origins(raw: str | None, *, mode: str) -> List[str]:
    """Parse a comma-separated CORS allowlist.

    Policy:
      - empty -> CORS disabled
      - wildcard "*" is rejected in prod
      - in non-prod modes "*" is allowed for convenience
    """
    s = (raw or "").strip()
    if not s:
        return []

    origins = [o.strip() for o in s.split(",") if o.strip()]
    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in AFOX_CORS_ORIGINS."
            )
        return ["*"]
    return origins


def load_api_config() -> ApiConfig:
    mode = os.getenv("AFOX_MODE", "prod").strip().lower()
    try:
        max_bytes = int(os.getenv("AFOX_MAX_REQUEST_BYTES", "65536").strip())
    except ValueError:
        max_bytes = 65536
    return ApiConfig(
        mode=mode,
        cors_origins=parse_cors_origins(os.getenv("AFOX_CORS_ORIGINS"), mode=mode),
        max_request_bytes=max(1024, max_bytes),
        require_signatures=_is_truthy(os.getenv("AFOX_REQUIRE_SIGNATURES")),
    )

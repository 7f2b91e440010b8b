# src/aurumfox/api/__main__.py
from __future__ import annotations

import uvicorn

from aurumfox.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so AFOX_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (config is read at app creation)
    from aurumfox.api.app import create_app
    from aurumfox.runtime.core_config import load_core_config

    cfg = load_core_config()
    uvicorn.run(create_app(), host=cfg.api_host, port=int(cfg.api_port), log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()

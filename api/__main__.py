from __future__ import annotations

import os

import uvicorn

from cryptodash.core.config import load_config


if __name__ == "__main__":
    config = load_config(os.getenv("CRYPTODASH_CONFIG", "config.toml"))
    host = os.getenv("APP_HOST", config.api.host)
    port = int(os.getenv("APP_PORT", str(config.api.port)))
    uvicorn.run("api.main:app", host=host, port=port, reload=False)

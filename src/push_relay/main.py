"""Application entry point for the push relay server."""

from __future__ import annotations

import os

import uvicorn

from push_relay.config.settings import AppConfig


def main() -> None:
    """Start the push relay server."""
    reload = os.getenv("PUSHRELAY_RELOAD", "false").lower() in ("1", "true", "yes")
    server = AppConfig().server
    uvicorn.run(
        "push_relay.api.app:create_app",
        factory=True,
        host=server.host,
        port=server.port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()

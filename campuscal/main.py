from __future__ import annotations

import os

import uvicorn

from campuscal.log_setup import setup_logging
from campuscal.web_app import AppContext, create_app


def main() -> None:
    config_path = os.getenv("CAMPUSCAL_CONFIG_PATH", "config.yaml")
    context = AppContext(config_path=config_path)
    config = context.config_manager.load()
    setup_logging(config.logging.level, json_format=config.logging.json)
    uvicorn.run(
        create_app(context),
        host=config.server.host,
        port=config.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()

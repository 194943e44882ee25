"""Main entry point for the typesprint server."""

import uvicorn

import config
from utils.log import configure_logging, get_logger
from web.app import create_app

logger = get_logger(__name__)


def main():
    """Build the app and serve it."""
    configure_logging(config.LOG_LEVEL)

    if config.JWT_SECRET == "change-me":
        logger.warning("JWT_SECRET not set; using the development default")

    # The database is initialized in the app's lifespan
    app = create_app()

    logger.info("Starting server", host=config.HOST, port=config.PORT)
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        ws_ping_interval=config.WS_PING_INTERVAL,
        ws_ping_timeout=config.WS_PING_TIMEOUT,
        log_config=None,
    )


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nServer stopped by user.")

import logging
import sys

from app.config import ConfigError, load_config
from app.lifecycle import RETURN_CODE_SERVER_ERROR, ShutdownState, build_server
from app.logging_setup import configure_logging
from app.server import create_app

logger = logging.getLogger("uvicorn.error")


def main(argv=None) -> int:
    try:
        config = load_config(argv=argv)
    except ConfigError as e:
        configure_logging()
        logger.critical(f"Invalid configuration: {e}")
        return RETURN_CODE_SERVER_ERROR

    level = configure_logging(config.get("log:level"))
    state = ShutdownState()
    app = create_app(config=config, shutdown_state=state)

    host = str(config.get("server:host", "0.0.0.0"))
    port = int(config.get("PORT") or config.get("server:port", 8080))
    shutdown_timeout = float(config.get("shutdown:timeout", 5))
    logger.info(f"Starting relay on {host}:{port} (env={config.environment()}, log={level})")

    server = build_server(app, state, host, port, shutdown_timeout)
    # uvicorn logs bind failures and exits with status 1 on its own
    server.run()
    if not server.started:
        logger.critical("Uncaught server error, relay did not start")
        return RETURN_CODE_SERVER_ERROR
    logger.info("Exiting process with status 0")
    return 0


if __name__ == "__main__":
    sys.exit(main())

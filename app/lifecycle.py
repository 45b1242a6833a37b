"""
Process lifecycle: graceful shutdown on kill signals and logging of errors
that would otherwise vanish inside the event loop.
"""

import asyncio
import logging
import signal
import threading
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from app.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("uvicorn.error")

RETURN_CODE_SERVER_ERROR = 1
DEFAULT_SHUTDOWN_TIMEOUT = 5


class ShutdownState:
    """Tracks whether the process has started shutting down."""

    def __init__(self):
        self._lock = threading.Lock()
        self._shutting_down = False

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def begin(self) -> bool:
        """Flip into shutdown mode. Returns False when already shutting down."""
        with self._lock:
            if self._shutting_down:
                logger.warning("Attempt to shut down while already shutting down...")
                return False
            self._shutting_down = True
        logger.info("Shutting down gracefully...")
        return True


def handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Event loop exception handler. Connection resets are routine, the rest is not."""
    exception = context.get("exception")
    message = context.get("message", "Unhandled exception in event loop")
    if isinstance(exception, ConnectionResetError):
        logger.info(f"Exception suppressed, connection reset by peer: {message}")
        return
    if exception is None:
        logger.error(f"Unhandled event loop error: {message}")
        return
    log_exception_with_details(logger, "[Loop]", exception)


@asynccontextmanager
async def lifespan(app: FastAPI):
    loop = asyncio.get_running_loop()
    previous_handler = loop.get_exception_handler()
    loop.set_exception_handler(handle_loop_exception)
    config = getattr(app.state, "config", None)
    env = config.environment() if config is not None else None
    logger.info(f"Relay started (env={env})")
    try:
        yield
    finally:
        loop.set_exception_handler(previous_handler)
        logger.info("Relay stopped")


class RelayServer(uvicorn.Server):
    """uvicorn server that records shutdown in a ShutdownState before draining."""

    def __init__(self, config: uvicorn.Config, state: ShutdownState):
        super().__init__(config)
        self.state = state

    def handle_exit(self, sig: int, frame) -> None:
        try:
            name = signal.Signals(sig).name
        except ValueError:
            name = str(sig)
        logger.info(f"Kill signal received: {name}")
        if not self.state.begin():
            logger.info("Unable to shutdown gracefully, forcing exit")
        super().handle_exit(sig, frame)


def build_server(
    app: FastAPI,
    state: ShutdownState,
    host: str,
    port: int,
    shutdown_timeout: Optional[float] = None,
) -> RelayServer:
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_config=None,
        timeout_graceful_shutdown=(
            DEFAULT_SHUTDOWN_TIMEOUT if shutdown_timeout is None else shutdown_timeout
        ),
    )
    return RelayServer(config, state)

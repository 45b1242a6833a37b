import logging
import time
from typing import Iterable, Optional

from fastapi import FastAPI, Request

from app.lifecycle import ShutdownState
from app.logging_setup import new_request_id, request_id_var
from app.utils import mask_headers

logger = logging.getLogger("uvicorn.error")

REQUEST_ID_HEADER = "X-Request-Id"


def install_request_context(app: FastAPI, paths_to_skip: Optional[Iterable[str]] = None):
    """
    Give every request a correlation id and log it on the way in and out.

    The id comes from the incoming X-Request-Id header when present. It is
    visible to all log records written while the request is handled and is
    echoed back in the response headers.
    """
    skipped = set(paths_to_skip or [])

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        token = request_id_var.set(request_id)
        request.state.request_id = request_id
        quiet = request.url.path in skipped
        start = time.perf_counter()
        try:
            if not quiet:
                logger.info(
                    f"Request received {request.method} {request.url.path} "
                    f"headers={mask_headers(request.headers)}"
                )
            try:
                response = await call_next(request)
            except Exception:
                if not quiet:
                    elapsed_ms = (time.perf_counter() - start) * 1000
                    logger.warning(
                        f"Response closed {request.method} {request.url.path} "
                        f"responseTimeInMs={elapsed_ms:.2f}"
                    )
                raise
            response.headers[REQUEST_ID_HEADER] = request_id
            if not quiet:
                elapsed_ms = (time.perf_counter() - start) * 1000
                logger.info(
                    f"Response sent {request.method} {request.url.path} "
                    f"status={response.status_code} responseTimeInMs={elapsed_ms:.2f}"
                )
            return response
        finally:
            request_id_var.reset(token)

    return request_context


def install_shutdown_guard(app: FastAPI, state: ShutdownState):
    """Ask clients to drop keep-alive connections once shutdown has started."""

    @app.middleware("http")
    async def shutdown_guard(request: Request, call_next):
        response = await call_next(request)
        if state.shutting_down:
            response.headers["Connection"] = "close"
        return response

    return shutdown_guard

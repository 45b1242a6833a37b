import html
import logging
import traceback
from http import HTTPStatus
from typing import Dict, List, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("uvicorn.error")

JSON = "json"
HTML = "html"
TEXT = "text"

_MEDIA_TYPES = {
    JSON: ("application/json", "application/*"),
    HTML: ("text/html", "text/*"),
}

ERROR_PAGE = """<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body>
<h1>{title}</h1>
{details}
</body>
</html>
"""


def _parse_accept(accept: str) -> List[Tuple[str, float]]:
    ranges = []
    for part in accept.split(","):
        media, *params = [p.strip() for p in part.split(";")]
        if not media:
            continue
        quality = 1.0
        for param in params:
            if param.startswith("q="):
                try:
                    quality = float(param[2:])
                except ValueError:
                    quality = 0.0
        ranges.append((media.lower(), quality))
    return ranges


def preferred_type(accept: Optional[str]) -> str:
    """Pick json, html or text for an Accept header. JSON wins ties."""
    if not accept:
        return JSON
    ranges = dict(_parse_accept(accept))
    best, best_q = TEXT, 0.0
    for kind in (JSON, HTML):
        quality = _quality_for(kind, ranges)
        if quality > best_q:
            best, best_q = kind, quality
    return best


def _quality_for(kind: str, ranges: Dict[str, float]) -> float:
    """Quality of the most specific range matching ``kind``, 0 when none does."""
    exact, partial = _MEDIA_TYPES[kind]
    for media in (exact, partial, "*/*"):
        if media in ranges:
            return ranges[media]
    return 0.0


def _status_of(exc: Exception) -> int:
    status = getattr(exc, "status_code", None)
    try:
        HTTPStatus(status)
    except (ValueError, TypeError):
        return 500
    return status


def error_response(
    request: Request, exc: Exception, status: int, expose_stack: bool
) -> Response:
    is_client_error = 400 <= status < 500
    if is_client_error:
        logger.info(f"Client error {status} on {request.method} {request.url.path}: {exc}")
    else:
        log_exception_with_details(logger, "[Server error]", exc)

    phrase = HTTPStatus(status).phrase
    detail = getattr(exc, "detail", None)
    message = (str(detail) if is_client_error and detail else "") or phrase
    code = getattr(exc, "code", None) if is_client_error else None
    stack = (
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        if expose_stack
        else None
    )
    headers = getattr(exc, "headers", None)

    kind = preferred_type(request.headers.get("accept"))
    if kind == JSON:
        return JSONResponse(
            {"code": code, "message": message, "stack": stack},
            status_code=status,
            headers=headers,
        )
    if kind == HTML:
        details = f"<pre>{html.escape(stack)}</pre>" if stack else ""
        page = ERROR_PAGE.format(
            title=html.escape(f"{status} {message}"), details=details
        )
        return HTMLResponse(page, status_code=status, headers=headers)
    return PlainTextResponse(message, status_code=status, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    """Attach the validation, HTTP and catch-all handlers to ``app``."""

    def expose_stack() -> bool:
        config = getattr(app.state, "config", None)
        return bool(config is not None and config.is_local())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request")
        if location:
            message = f'"{location}" {message}'
        logger.warning(
            f"Request validation failed: {request.method} {request.url.path} - {message}"
        )
        return JSONResponse({"message": message}, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(request, exc, _status_of(exc), expose_stack())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        return error_response(request, exc, 500, expose_stack())

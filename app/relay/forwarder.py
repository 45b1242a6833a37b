import asyncio
import json
import logging
from typing import Any, Optional

import httpx
from opentelemetry import trace
from opentelemetry.trace import Tracer

from app.relay.models import (
    ForwardResult,
    ForwardSuccess,
    MalformedResponse,
    MissingField,
    OutboundOptions,
    RequestDescriptor,
    UpstreamError,
    serialize_body,
)
from app.utils import mask_headers
from app.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from app.utils.traced_requests import traced_request

logger = logging.getLogger("uvicorn.error")

TIMEOUT_CODE = "ETIMEDOUT"
# Upper bound for response bodies copied into error envelopes
MAX_ERROR_BODY = 4096


def validate(descriptor: RequestDescriptor) -> Optional[MissingField]:
    if not descriptor.url:
        return MissingField.for_field("url")
    if not descriptor.method:
        return MissingField.for_field("method")
    return None


def build_options(descriptor: RequestDescriptor) -> OutboundOptions:
    """Translate the optional descriptor fields that are actually present."""
    return OutboundOptions(
        method=descriptor.method,
        body=serialize_body(descriptor.body) if descriptor.body is not None else None,
        headers=dict(descriptor.headers) if descriptor.headers is not None else None,
        timeout=descriptor.timeout,
        retries=descriptor.retries,
    )


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def decode_json(text: str) -> Any:
    """
    Decode a strict JSON document.

    Rejects NaN and Infinity literals, and strings that cannot be written back
    out as UTF-8 (lone surrogates). Raises ValueError for both.
    """
    data = json.loads(text, parse_constant=_reject_constant)
    json.dumps(data, ensure_ascii=False, allow_nan=False).encode("utf-8")
    return data


def _truncate(text: Optional[str]) -> Optional[str]:
    if text is None or len(text) <= MAX_ERROR_BODY:
        return text
    return text[:MAX_ERROR_BODY]


class Forwarder:
    """
    Executes request descriptors against their upstream.

    Holds no per-request state: each call opens and closes its own client.
    ``transport`` replaces the network transport, which is how tests plug in
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        tracer: Optional[Tracer] = None,
    ):
        self._transport = transport
        self._tracer = tracer or trace.get_tracer(__name__)

    def _client(self, options: OutboundOptions) -> httpx.AsyncClient:
        transport = self._transport
        if transport is None and options.retries is not None:
            transport = httpx.AsyncHTTPTransport(retries=options.retries)
        kwargs = {"follow_redirects": True}
        if transport is not None:
            kwargs["transport"] = transport
        return httpx.AsyncClient(**kwargs)

    async def _send(self, url: str, options: OutboundOptions) -> httpx.Response:
        async with self._client(options) as client:
            call = client.request(url=url, **options.request_kwargs())
            if options.timeout_seconds is None:
                return await call
            return await asyncio.wait_for(call, timeout=options.timeout_seconds)

    async def forward(self, descriptor: RequestDescriptor) -> ForwardResult:
        missing = validate(descriptor)
        if missing is not None:
            logger.info(f"[Proxy] Rejected descriptor: {missing.message}")
            return missing

        url = descriptor.url
        options = build_options(descriptor)

        with traced_request(
            self._tracer,
            operation="relay.forward",
            start_message=(
                f"[Proxy] Calling {options.method} {url} "
                f"headers={mask_headers(options.headers)} timeout={options.timeout} "
                f"retries={options.retries}"
            ),
            extra_attrs={
                "relay.url": url,
                "relay.method": options.method,
                "relay.timeout_ms": options.timeout,
                "relay.retries": options.retries,
            },
        ) as span:
            try:
                response = await self._send(url, options)
            except (asyncio.TimeoutError, httpx.TimeoutException) as e:
                logger.error(f"[Proxy] Timeout calling {url}: {format_exception_message(e)}")
                span.set_attribute("relay.error", "timeout")
                return UpstreamError(
                    message=f"Timeout awaiting response from {url}"
                    + (f" after {options.timeout}ms" if options.timeout else ""),
                    name="TimeoutError",
                    code=TIMEOUT_CODE,
                    method=options.method,
                    url=url,
                )
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                log_exception_with_details(logger, "[Proxy]", e)
                span.set_attribute("relay.error", type(e).__name__)
                return UpstreamError(
                    message=format_exception_message(e),
                    name=type(e).__name__,
                    method=options.method,
                    url=url,
                )
            except Exception as e:
                log_exception_with_details(logger, "[Proxy] Unexpected error", e)
                span.set_attribute("relay.error", type(e).__name__)
                return UpstreamError(
                    message=format_exception_message(e),
                    name=type(e).__name__,
                    method=options.method,
                    url=url,
                )

            span.set_attribute("relay.status_code", response.status_code)
            return self._map_response(url, options, response)

    def _map_response(
        self, url: str, options: OutboundOptions, response: httpx.Response
    ) -> ForwardResult:
        if not response.is_success:
            logger.error(
                f"[Proxy] Upstream {url} answered {response.status_code} {response.reason_phrase}"
            )
            return UpstreamError(
                message=f"Response code {response.status_code} ({response.reason_phrase})",
                name="HTTPError",
                status_code=response.status_code,
                status_message=response.reason_phrase,
                method=options.method,
                url=url,
                body=_truncate(response.text),
            )

        try:
            data = decode_json(response.text)
        except ValueError as e:
            logger.error(f"[Proxy] Upstream {url} returned a body that is not JSON: {e}")
            return MalformedResponse(
                message=f"Upstream response is not valid JSON: {e}",
                status_code=response.status_code,
                url=url,
                body=_truncate(response.text),
            )

        logger.debug(f"[Proxy] Upstream {url} answered {response.status_code}")
        return ForwardSuccess(data=data)

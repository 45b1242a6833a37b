from .forwarder import Forwarder, build_options, validate
from .models import (
    ForwardError,
    ForwardResult,
    ForwardSuccess,
    MalformedResponse,
    MissingField,
    OutboundOptions,
    RequestDescriptor,
    UpstreamError,
)

__all__ = [
    "Forwarder",
    "build_options",
    "validate",
    "ForwardError",
    "ForwardResult",
    "ForwardSuccess",
    "MalformedResponse",
    "MissingField",
    "OutboundOptions",
    "RequestDescriptor",
    "UpstreamError",
]

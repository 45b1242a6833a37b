import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RequestDescriptor(BaseModel):
    """Caller supplied description of the outbound call.

    ``url`` and ``method`` are required by the forwarder, but are optional here
    so that a missing one is reported as a missing field and not as a schema
    error.
    """

    model_config = ConfigDict(frozen=True)

    url: Optional[str] = None
    method: Optional[str] = None
    body: Optional[Any] = None
    headers: Optional[Dict[str, str]] = None
    timeout: Optional[int] = Field(None, gt=0, description="Milliseconds")
    retries: Optional[int] = Field(None, ge=0)


@dataclass(frozen=True)
class OutboundOptions:
    """Options for the outbound call. ``None`` means "use the client default"."""

    method: str
    body: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    timeout: Optional[int] = None
    retries: Optional[int] = None

    @property
    def timeout_seconds(self) -> Optional[float]:
        return self.timeout / 1000 if self.timeout is not None else None

    def request_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``httpx.AsyncClient.request``, only for set options."""
        kwargs: Dict[str, Any] = {"method": self.method}
        if self.body is not None:
            kwargs["content"] = self.body
        if self.headers is not None:
            kwargs["headers"] = dict(self.headers)
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout_seconds
        return kwargs


def serialize_body(body: Any) -> str:
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class ForwardSuccess:
    data: Any


@dataclass(frozen=True)
class ForwardError(ABC):
    """Base for failed forward results."""

    message: str

    http_status = 400

    @abstractmethod
    def to_envelope(self) -> Dict[str, Any]:
        """JSON body returned to the caller for this failure."""


@dataclass(frozen=True)
class MissingField(ForwardError):
    field_name: str = ""

    @classmethod
    def for_field(cls, name: str) -> "MissingField":
        return cls(message=f'"{name}" is missing.', field_name=name)

    def to_envelope(self) -> Dict[str, Any]:
        return {"message": self.message}


@dataclass(frozen=True)
class UpstreamError(ForwardError):
    name: str = "UpstreamError"
    status_code: Optional[int] = None
    status_message: Optional[str] = None
    code: Optional[str] = None
    method: Optional[str] = None
    url: Optional[str] = None
    body: Optional[str] = None

    def to_envelope(self) -> Dict[str, Any]:
        err = {
            "name": self.name,
            "message": self.message,
            "statusCode": self.status_code,
            "statusMessage": self.status_message,
            "code": self.code,
            "method": self.method,
            "url": self.url,
            "body": self.body,
        }
        return {"err": {k: v for k, v in err.items() if v is not None}}


@dataclass(frozen=True)
class MalformedResponse(ForwardError):
    status_code: Optional[int] = None
    url: Optional[str] = None
    body: Optional[str] = field(default=None, repr=False)

    def to_envelope(self) -> Dict[str, Any]:
        err = {
            "name": "MalformedResponse",
            "message": self.message,
            "statusCode": self.status_code,
            "url": self.url,
            "body": self.body,
        }
        return {"err": {k: v for k, v in err.items() if v is not None}}


ForwardResult = Union[ForwardSuccess, MissingField, UpstreamError, MalformedResponse]

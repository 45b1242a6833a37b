import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.config import Config
from app.relay import Forwarder, ForwardSuccess, RequestDescriptor

router = APIRouter()

logger = logging.getLogger("uvicorn.error")


def get_forwarder(request: Request) -> Forwarder:
    return request.app.state.forwarder


def get_config(request: Request) -> Config:
    return request.app.state.config


@router.get("/")
async def info(request: Request, config: Config = Depends(get_config)):
    logger.info(f"call:received:/: query={dict(request.query_params)}")
    return {"env": config.environment()}


@router.post("/proxy")
async def proxy(
    descriptor: Optional[RequestDescriptor] = None,
    forwarder: Forwarder = Depends(get_forwarder),
):
    """Perform the described outbound call and return its decoded JSON body."""
    descriptor = descriptor or RequestDescriptor()
    result = await forwarder.forward(descriptor)
    if isinstance(result, ForwardSuccess):
        return JSONResponse(content=result.data)
    return JSONResponse(content=result.to_envelope(), status_code=result.http_status)

from typing import Optional, Sequence

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from app.config import Config, load_config
from app.errors import register_error_handlers
from app.lifecycle import ShutdownState, lifespan
from app.middleware import install_request_context, install_shutdown_guard
from app.relay import Forwarder
from app.routes import router
from app.vars import LOG_SKIP_PATHS, OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

# Add app_name to the metrics
app_info = Info("relay_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})

_tracing_configured = False


def configure_tracing() -> None:
    """Install the SDK tracer provider once per process, exporting only when OTLP_ENDPOINT is set."""
    global _tracing_configured
    if _tracing_configured:
        return
    tracer_provider = TracerProvider(
        resource=Resource.create({"service.name": SERVICE_NAME})
    )
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=OTLP_HEADERS or None,
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
    trace.set_tracer_provider(tracer_provider)
    _tracing_configured = True


def create_app(
    config: Optional[Config] = None,
    forwarder: Optional[Forwarder] = None,
    shutdown_state: Optional[ShutdownState] = None,
    log_skip_paths: Optional[Sequence[str]] = None,
) -> FastAPI:
    """Assemble the relay application around explicitly passed collaborators."""
    configure_tracing()

    app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)
    app.state.config = config or load_config(argv=[])
    app.state.forwarder = forwarder or Forwarder()
    app.state.shutdown = shutdown_state or ShutdownState()

    register_error_handlers(app)
    install_shutdown_guard(app, app.state.shutdown)
    install_request_context(
        app, LOG_SKIP_PATHS if log_skip_paths is None else log_skip_paths
    )

    Instrumentator().instrument(app).expose(app)
    FastAPIInstrumentor.instrument_app(app)

    app.include_router(router)
    return app


# Entry point for `uvicorn app.server:app`; `python -m app` builds its own.
app = create_app()

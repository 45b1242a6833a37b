import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "http-relay")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

RELAY_CONFIG_DIR = os.getenv(
    "RELAY_CONFIG_DIR",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config"),
)

# Paths that the request/response logger stays quiet about
LOG_SKIP_PATHS = [
    p.strip() for p in os.getenv("LOG_SKIP_PATHS", "/metrics").split(",") if p.strip()
]

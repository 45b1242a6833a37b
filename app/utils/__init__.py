from typing import Dict, Mapping, Optional

SENSITIVE_HEADERS = {"authorization", "proxy-authorization", "cookie"}


def mask_authorization(value: str) -> str:
    """Keep the auth scheme but drop the credentials, e.g. ``Bearer X``."""
    parts = value.split(" ")
    if len(parts) != 2:
        return value
    return f"{parts[0]} X"


def mask_cookie(value: str) -> str:
    masked = []
    for cookie in value.split(";"):
        name, sep, _ = cookie.partition("=")
        masked.append(f"{name}=X" if sep else cookie)
    return ";".join(masked)


def mask_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Return a copy of ``headers`` that is safe to log."""
    if not headers:
        return {}
    safe = {}
    for name, value in headers.items():
        lowered = name.lower()
        if lowered == "cookie":
            safe[name] = mask_cookie(value)
        elif lowered in SENSITIVE_HEADERS:
            safe[name] = mask_authorization(value)
        else:
            safe[name] = value
    return safe

"""
Layered configuration.

Lookup order, first hit wins:

1. command-line arguments (``--server:port 8080`` or ``--server:port=8080``)
2. environment variables, ``__`` separates nesting levels (``server__port``)
3. ``.config.json`` (local override, not committed)
4. ``.config.<env>.json`` (sensitive, environment specific)
5. ``.config.generic.json`` (sensitive, generic)
6. ``config.<env>.json``
7. ``config.generic.json``

``<env>`` is the ``APP_ENV`` value found in the arguments or the environment.
Keys are colon separated paths into nested JSON objects.
"""

import json
import logging
import os
import sys
from typing import Any, Dict, List, Mapping, Optional, Sequence

from app.vars import RELAY_CONFIG_DIR

logger = logging.getLogger("uvicorn.error")

ENV_KEY = "APP_ENV"
ENV_SEPARATOR = "__"
KEY_SEPARATOR = ":"

PRODUCTION = "production"
DEVELOPMENT = "development"
LOCAL = "local"


class ConfigError(Exception):
    """Raised when a configuration file exists but cannot be used."""


def _coerce(value: str) -> Any:
    """Turn ``"8080"`` into ``8080`` and ``"true"`` into ``True``, leave other text alone."""
    try:
        return json.loads(value)
    except ValueError:
        return value


def _set_path(target: Dict[str, Any], path: List[str], value: Any) -> None:
    node = target
    for part in path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[path[-1]] = value


def parse_argv(argv: Sequence[str]) -> Dict[str, Any]:
    """Parse ``--key value``, ``--key=value`` and bare ``--flag`` arguments."""
    store: Dict[str, Any] = {}
    i = 0
    while i < len(argv):
        arg = argv[i]
        i += 1
        if not arg.startswith("--") or len(arg) == 2:
            continue
        name = arg[2:]
        if "=" in name:
            name, raw = name.split("=", 1)
            value = _coerce(raw)
        elif i < len(argv) and not argv[i].startswith("--"):
            value = _coerce(argv[i])
            i += 1
        else:
            value = True
        _set_path(store, name.split(KEY_SEPARATOR), value)
    return store


def parse_environ(environ: Mapping[str, str]) -> Dict[str, Any]:
    store: Dict[str, Any] = {}
    for name, raw in environ.items():
        path = [p for p in name.split(ENV_SEPARATOR) if p]
        if not path:
            continue
        _set_path(store, path, raw)
    return store


def read_file(path: str) -> Dict[str, Any]:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except ValueError as e:
        raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    logger.debug(f"[Config] Loaded {path}")
    return data


def _lookup(store: Mapping[str, Any], path: List[str]) -> Any:
    node: Any = store
    for part in path:
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


class Config:
    """Read-only view over an ordered list of configuration stores."""

    def __init__(self, stores: Sequence[Mapping[str, Any]]):
        self._stores = list(stores)

    def get(self, key: str, default: Any = None) -> Any:
        path = key.split(KEY_SEPARATOR)
        for store in self._stores:
            value = _lookup(store, path)
            if value is not None:
                return value
        return default

    def environment(self) -> Optional[str]:
        return self.get(ENV_KEY)

    def is_production(self) -> bool:
        return self.environment() == PRODUCTION

    def is_local(self) -> bool:
        return self.environment() == LOCAL

    def is_development(self) -> bool:
        return self.environment() == DEVELOPMENT


def load_config(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    config_dir: Optional[str] = None,
) -> Config:
    """Build the configuration cascade. Defaults to the running process."""
    argv = sys.argv[1:] if argv is None else argv
    environ = os.environ if environ is None else environ
    config_dir = config_dir or RELAY_CONFIG_DIR

    head = [parse_argv(argv), parse_environ(environ)]
    env = Config(head).environment()

    file_names = [".config.json"]
    if env:
        file_names.append(f".config.{env}.json")
    file_names.append(".config.generic.json")
    if env:
        file_names.append(f"config.{env}.json")
    file_names.append("config.generic.json")

    files = [read_file(os.path.join(config_dir, name)) for name in file_names]
    return Config(head + files)

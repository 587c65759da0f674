"""Configuration loading utilities for the chat client.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable CHAT_CLIENT_CONFIG
3. Fallback to "config/default.yaml"

It also supports optional overrides from environment variables with prefix
``CHAT_CLIENT__`` (e.g., CHAT_CLIENT__CLIENT__API_BASE=http://10.0.0.2:8000).
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict

import httpx
import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHAT_CLIENT__"
ENV_CONFIG_PATH = "CHAT_CLIENT_CONFIG"
DEFAULT_CONFIG_PATH = "config/default.yaml"

DEFAULTS: Dict[str, Any] = {
    "client": {
        "api_base": "http://127.0.0.1:8000",
        "endpoint": "/chatagent",
        "connect_timeout": 5.0,
        "read_timeout": 60.0,
    },
    "session": {
        "store_path": "data/session.json",
        "key": "chat_session_id",
    },
    "chat": {
        "greeting": "How can I help you today! Here to analyse your resume and provide you insights.",
    },
    "server": {
        "framing": "sse",
        "chunk_chars": 16,
        "cors_origins": ["*"],
    },
    "logging": {"level": "WARNING"},
}


def _coerce(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides with prefix CHAT_CLIENT__."""
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        # e.g., CHAT_CLIENT__SESSION__STORE_PATH -> cfg["session"]["store_path"]
        parts = key[len(ENV_PREFIX):].lower().split("__")
        sub = cfg
        for p in parts[:-1]:
            if p not in sub or not isinstance(sub[p], dict):
                sub[p] = {}
            sub = sub[p]
        sub[parts[-1]] = _coerce(value)
    return cfg


def _merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load YAML configuration for the chat client.

    Parameters
    ----------
    path : str | None
        Optional path to a configuration file. If not provided, the
        environment variable ``CHAT_CLIENT_CONFIG`` is consulted. As a
        last resort ``config/default.yaml`` is used.

    Returns
    -------
    Dict[str, Any]
        Defaults merged with the file contents, environment overrides applied.
    """
    if path is None:
        path = os.environ.get(ENV_CONFIG_PATH, DEFAULT_CONFIG_PATH)

    path_obj = Path(path)
    if not path_obj.exists():
        logger.warning("Config file not found at %s. Using defaults.", path_obj)
        return _apply_env_overrides(copy.deepcopy(DEFAULTS))

    with path_obj.open("r", encoding="utf-8") as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuntimeError(f"Failed to parse config file {path_obj}: {e}") from e

    if not isinstance(loaded, dict):
        raise RuntimeError(f"Invalid config format in {path_obj}, expected dict.")

    return _apply_env_overrides(_merge(DEFAULTS, loaded))


def client_timeout(cfg: Dict[str, Any]) -> httpx.Timeout:
    """Build the httpx timeout from the ``client`` section."""
    client_cfg = cfg.get("client", {}) or {}
    connect = float(client_cfg.get("connect_timeout", 5.0))
    read = client_cfg.get("read_timeout", 60.0)
    # read_timeout: null waits forever for the next chunk
    read = None if read is None else float(read)
    return httpx.Timeout(connect=connect, read=read, write=30.0, pool=connect)

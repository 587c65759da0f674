"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from chat_client.transport import ChatTransport  # noqa: E402

BASE_URL = "http://agent.test"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run with a clean environment (no leftover vars)."""
    for var in list(os.environ):
        if var == "CHAT_CLIENT_CONFIG" or var.startswith("CHAT_CLIENT__"):
            monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(scope="function")
def missing_config(tmp_path: Path) -> str:
    """A config path that does not exist, so built-in defaults apply."""
    return str(tmp_path / "missing.yaml")


@pytest.fixture
def mock_transport() -> Callable[..., ChatTransport]:
    """Build a ChatTransport backed by an ``httpx.MockTransport`` handler.

    The returned factory records every request on ``factory.requests``.
    """
    requests: List[httpx.Request] = []

    def factory(handler) -> ChatTransport:
        def recording(request: httpx.Request) -> httpx.Response:
            request.read()
            requests.append(request)
            return handler(request)

        client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(recording))
        return ChatTransport(client=client)

    factory.requests = requests
    return factory

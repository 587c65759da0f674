"""Reference backend for the chat client.

This package provides a FastAPI application factory named ``create_app``
inside ``agent_server/server.py`` that answers ``POST /chatagent`` in any of
the framings the client understands (SSE, NDJSON, plain text, JSON).

Typical usage
-------------
from agent_server import create_app
app = create_app(framing="ndjson")

or, from the provided launcher:

python scripts/run_server.py --host 127.0.0.1 --port 8000 --framing sse
"""

from __future__ import annotations

from .server import FRAMINGS, create_app, echo_responder, render_body

__all__ = ["FRAMINGS", "create_app", "echo_responder", "render_body"]

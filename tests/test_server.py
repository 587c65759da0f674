from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from agent_server.server import create_app, render_body
from chat_client.client import ChatSession
from chat_client.storage import SessionStore
from chat_client.transcript import Attachment
from chat_client.transport import ChatTransport


def _session(app, tmp_path: Path) -> ChatSession:
    transport = ChatTransport(client=TestClient(app))
    return ChatSession(transport, store=SessionStore(tmp_path / "session.json"))


def test_health_reports_framing(missing_config):
    client = TestClient(create_app(missing_config, framing="ndjson"))
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["framing"] == "ndjson"


def test_empty_message_rejected(missing_config):
    client = TestClient(create_app(missing_config))
    r = client.post("/chatagent", data={"userchat": "   "})
    assert r.status_code == 400


def test_unknown_framing_rejected(missing_config):
    with pytest.raises(ValueError):
        create_app(missing_config, framing="xml")


def test_render_body_sse_ends_with_session_and_sentinel():
    lines = list(render_body("sse", "abcdef", "sid", 4))
    assert lines == [
        'data: {"response": "abcd"}\n\n',
        'data: {"response": "ef"}\n\n',
        'data: {"session_id": "sid"}\n\n',
        "data: [DONE]\n\n",
    ]


@pytest.mark.parametrize("framing", ["sse", "ndjson", "json"])
def test_roundtrip_through_client(framing, missing_config, tmp_path: Path):
    """Every framing reconstructs the same reply and hands back a session id."""
    session = _session(create_app(missing_config, framing=framing, chunk_chars=3), tmp_path)

    reply = session.send("hello there")
    assert reply.content == "You said: hello there"
    first_sid = session.session_id
    assert first_sid
    assert session.store.get() == first_sid

    # The server keeps the session the client sends back
    session.send("again")
    assert session.session_id == first_sid


def test_text_framing_streams_without_session(missing_config, tmp_path: Path):
    session = _session(create_app(missing_config, framing="text", chunk_chars=4), tmp_path)
    reply = session.send("hello there")
    assert reply.content == "You said: hello there"
    assert session.session_id is None


def test_attachment_reaches_server(missing_config, tmp_path: Path):
    doc = tmp_path / "resume.pdf"
    doc.write_bytes(b"%PDF-1.4 resume")
    session = _session(create_app(missing_config, framing="sse"), tmp_path)

    reply = session.send("review this", Attachment(name="resume.pdf", path=str(doc)))
    assert "(received resume.pdf)" in reply.content
    assert session.transcript.messages[-2].content == "review this\n[Attachment: resume.pdf]"


def test_custom_responder_and_multibyte_reply(missing_config, tmp_path: Path):
    app = create_app(missing_config, framing="sse", chunk_chars=1, responder=lambda msg, att: "Grüße, 世界 🌍")
    session = _session(app, tmp_path)
    assert session.send("hi").content == "Grüße, 世界 🌍"


def test_async_client_against_asgi_app(missing_config):
    app = create_app(missing_config, framing="ndjson", chunk_chars=5)
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
    session = ChatSession(ChatTransport(async_client=client))

    async def run():
        try:
            return await session.asend("async hello")
        finally:
            await client.aclose()

    reply = asyncio.run(run())
    assert reply.content == "You said: async hello"
    assert session.session_id

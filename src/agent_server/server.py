"""FastAPI reference backend speaking every framing the chat client accepts."""
from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable, Dict, Iterator, List, Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, field_validator

from chat_client.config import load_config

logger = logging.getLogger(__name__)

FRAMINGS = ("sse", "ndjson", "text", "json")

Responder = Callable[[str, Optional[str]], str]


# -----------------------------
# Pydantic request/response
# -----------------------------
class ChatRequest(BaseModel):
    userchat: str = Field(default="", description="User message text.")
    session_id: Optional[str] = Field(default=None, description="Conversation key; minted when absent.")
    attachment: Optional[str] = Field(default=None, description="Uploaded file name, if any.")

    @field_validator("session_id")
    @classmethod
    def _blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        return v or None


class ChatResponse(BaseModel):
    response: str
    session_id: str


# -----------------------------
# Utilities
# -----------------------------
def echo_responder(message: str, attachment: Optional[str]) -> str:
    """Default reply: repeat the message and acknowledge the file."""
    reply = f"You said: {message}" if message else "You sent a file."
    if attachment:
        reply += f" (received {attachment})"
    return reply


def _chunks(text: str, size: int) -> List[str]:
    size = max(1, int(size))
    return [text[i : i + size] for i in range(0, len(text), size)] or [""]


def _dumps(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False)


def render_body(framing: str, reply: str, session_id: str, chunk_chars: int) -> Iterator[str]:
    """Serialise a reply in one of the streamed framings."""
    pieces = _chunks(reply, chunk_chars)
    if framing == "sse":
        for piece in pieces:
            yield f"data: {_dumps({'response': piece})}\n\n"
        yield f"data: {_dumps({'session_id': session_id})}\n\n"
        yield "data: [DONE]\n\n"
    elif framing == "ndjson":
        for piece in pieces:
            yield _dumps({"response": piece}) + "\n"
        yield _dumps({"session_id": session_id}) + "\n"
    elif framing == "text":
        yield from pieces
    else:
        raise ValueError(f"Not a streamed framing: {framing!r}")


_MEDIA_TYPES = {
    "sse": "text/event-stream",
    "ndjson": "application/x-ndjson",
    "text": "text/plain",
}


# -----------------------------
# App factory
# -----------------------------
def create_app(
    config_path: Optional[str] = None,
    *,
    framing: Optional[str] = None,
    responder: Optional[Responder] = None,
    chunk_chars: Optional[int] = None,
) -> FastAPI:
    cfg = load_config(config_path)
    server_cfg = cfg.get("server", {}) or {}

    framing = (framing or server_cfg.get("framing") or "sse").lower()
    if framing not in FRAMINGS:
        raise ValueError(f"Unknown framing {framing!r}; expected one of {', '.join(FRAMINGS)}")
    chunk_chars = int(chunk_chars or server_cfg.get("chunk_chars", 16))
    responder = responder or echo_responder
    cors_origins = server_cfg.get("cors_origins", ["*"])

    app = FastAPI(title="Agent Chat Reference Server", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"ok": True, "framing": framing, "chunk_chars": chunk_chars}

    @app.post("/chatagent")
    async def chatagent(
        userchat: str = Form(default=""),
        session_id: Optional[str] = Form(default=None),
        file: Optional[UploadFile] = File(default=None),
    ):
        req = ChatRequest(
            userchat=userchat.strip(),
            session_id=session_id,
            attachment=file.filename if file is not None else None,
        )
        if not req.userchat and req.attachment is None:
            raise HTTPException(status_code=400, detail="Message cannot be empty.")
        if file is not None:
            size = len(await file.read())
            logger.info("Received attachment %s (%d bytes)", req.attachment, size)

        sid = req.session_id or uuid.uuid4().hex
        reply = responder(req.userchat, req.attachment)

        if framing == "json":
            return JSONResponse(ChatResponse(response=reply, session_id=sid).model_dump())
        return StreamingResponse(
            render_body(framing, reply, sid, chunk_chars),
            media_type=_MEDIA_TYPES[framing],
        )

    return app

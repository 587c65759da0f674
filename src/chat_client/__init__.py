"""Streaming chat client for the agent backend.

Raw response bytes go in and structured events come out. The events keep a
transcript with a single in-flight assistant message up to date.

Typical usage
-------------
from chat_client import ChatSession, ChatTransport
session = ChatSession(ChatTransport("http://127.0.0.1:8000"))
reply = session.send("Hello")

or, from the provided launcher:

python scripts/run_client.py "Hello"
"""

from __future__ import annotations

from .client import ChatSession, session_from_config
from .decoder import TextChunkDecoder
from .events import Delta, Event, SessionId, StreamComplete, StreamError
from .framing import extract_records, strip_framing
from .records import Literal, RecordResult, Structured, interpret, interpret_payload, parse_record
from .storage import SessionStore
from .transcript import Attachment, Message, Role, Transcript, TranscriptBusyError, TurnState
from .transport import ChatTransport, StreamState, iter_events

__all__ = [
    "Attachment",
    "ChatSession",
    "ChatTransport",
    "Delta",
    "Event",
    "Literal",
    "Message",
    "RecordResult",
    "Role",
    "SessionId",
    "SessionStore",
    "StreamComplete",
    "StreamError",
    "StreamState",
    "Structured",
    "TextChunkDecoder",
    "Transcript",
    "TranscriptBusyError",
    "TurnState",
    "extract_records",
    "interpret",
    "interpret_payload",
    "iter_events",
    "parse_record",
    "session_from_config",
    "strip_framing",
    "__version__",
    "get_version",
]

# ---------------------------------------------------------------------
# Version handling
# ---------------------------------------------------------------------
__version__ = "0.1.0"


def get_version() -> str:
    """Return the package version."""
    return __version__

"""Events emitted by the transport adapter and consumed by the transcript."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Delta:
    """A fragment of assistant text to append to the in-flight message."""
    text: str


@dataclass(frozen=True)
class SessionId:
    session_id: str


@dataclass(frozen=True)
class StreamError:
    """The turn failed; ``message`` is shown to the user."""
    message: str


@dataclass(frozen=True)
class StreamComplete:
    """End of the response.

    ``text`` is only set for a non-streamed reply, whose full text replaces
    the placeholder instead of being appended.
    """
    text: Optional[str] = None


Event = Union[Delta, SessionId, StreamError, StreamComplete]

TERMINAL_EVENTS = (StreamError, StreamComplete)

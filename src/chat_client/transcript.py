"""Ordered chat transcript with a single in-flight assistant message.

One turn moves through::

    IDLE -> USER_SUBMITTED -> AWAITING_RESPONSE -> STREAMING -> FINALIZED | ERRORED -> IDLE

The in-flight assistant message is held in an explicit slot, so applying a
delta never searches the message list. All mutations take one re-entrant
lock; network and UI threads may both call in.
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterator, List, Optional, Tuple

from .events import Delta, Event, SessionId, StreamComplete, StreamError

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error: "


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class TurnState(str, Enum):
    IDLE = "idle"
    USER_SUBMITTED = "user_submitted"
    AWAITING_RESPONSE = "awaiting_response"
    STREAMING = "streaming"
    FINALIZED = "finalized"
    ERRORED = "errored"


class TranscriptBusyError(RuntimeError):
    """Raised when a turn is submitted while another is still in flight."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass
class Message:
    id: str
    role: Role
    content: str = ""
    timestamp: datetime = field(default_factory=_utc_now)
    error: bool = False


@dataclass(frozen=True)
class Attachment:
    """Describes a file sent along with a user message."""
    name: str
    path: Optional[str] = None
    content_type: Optional[str] = None

    def annotation(self) -> str:
        return f"\n[Attachment: {self.name}]"


class Transcript:
    def __init__(
        self,
        *,
        greeting: Optional[str] = None,
        session_id: Optional[str] = None,
        on_session_change: Optional[Callable[[Optional[str]], None]] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._messages: List[Message] = []
        self._target: Optional[Message] = None
        self._state = TurnState.IDLE
        self.last_outcome: Optional[TurnState] = None
        self._session_id = session_id
        self.on_session_change = on_session_change
        if greeting:
            self._messages.append(Message(id=_new_id("sys"), role=Role.SYSTEM, content=greeting))

    # --------- read side ----------
    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def busy(self) -> bool:
        return self._target is not None

    @property
    def messages(self) -> Tuple[Message, ...]:
        """Snapshot copies in display order."""
        with self._lock:
            return tuple(replace(m) for m in self._messages)

    @property
    def in_flight(self) -> Optional[Message]:
        with self._lock:
            return replace(self._target) if self._target is not None else None

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self._messages)

    # --------- turn lifecycle ----------
    def submit(self, text: str, attachment: Optional[Attachment] = None) -> Tuple[Message, Message]:
        """Append the user message and an empty assistant placeholder.

        Returns copies of ``(user_message, placeholder)``.
        """
        text = (text or "").strip()
        if not text and attachment is None:
            raise ValueError("Nothing to send: message is empty and no file is attached.")
        with self._lock:
            if self._target is not None:
                raise TranscriptBusyError(
                    f"A turn is already in flight (message {self._target.id}, state {self._state.value})."
                )
            content = text + (attachment.annotation() if attachment is not None else "")
            user = Message(id=_new_id("usr"), role=Role.USER, content=content)
            self._messages.append(user)
            self._state = TurnState.USER_SUBMITTED

            placeholder = Message(id=_new_id("srv"), role=Role.ASSISTANT)
            self._messages.append(placeholder)
            self._target = placeholder
            self._state = TurnState.AWAITING_RESPONSE
            logger.debug("Turn started: user=%s assistant=%s", user.id, placeholder.id)
            return replace(user), replace(placeholder)

    def apply_delta(self, text: str) -> None:
        if not text:
            return
        with self._lock:
            if self._target is None:
                logger.debug("Dropping delta with no turn in flight (%d chars)", len(text))
                return
            self._target.content += text
            self._state = TurnState.STREAMING

    def apply_session_id(self, session_id: Optional[str]) -> None:
        with self._lock:
            if session_id == self._session_id:
                return
            self._session_id = session_id
            callback = self.on_session_change
        logger.debug("Session id set to %r", session_id)
        if callback is not None:
            callback(session_id)

    def finalize(self, full_text: Optional[str] = None) -> Optional[Message]:
        """Close the turn.

        ``full_text`` replaces the placeholder content wholesale, but only if
        no delta has been appended yet. Returns a copy of the final message.
        """
        with self._lock:
            target = self._target
            if target is None:
                logger.debug("finalize() with no turn in flight")
                return None
            if full_text and self._state is TurnState.AWAITING_RESPONSE:
                target.content = full_text
            return self._end_turn(TurnState.FINALIZED)

    def fail(self, error_message: str) -> Optional[Message]:
        """Replace the in-flight message with a user-facing error message."""
        with self._lock:
            target = self._target
            if target is None:
                logger.debug("fail() with no turn in flight: %s", error_message)
                return None
            err = Message(
                id=_new_id("err"),
                role=Role.ASSISTANT,
                content=f"{ERROR_PREFIX}{error_message}",
                error=True,
            )
            index = next(i for i, m in enumerate(self._messages) if m is target)
            self._messages[index] = err
            self._target = err
            return self._end_turn(TurnState.ERRORED)

    def cancel(self) -> Optional[Message]:
        """Abandon the turn; text already appended stays."""
        with self._lock:
            if self._target is None:
                return None
            logger.debug("Turn cancelled after %d chars", len(self._target.content))
            return self._end_turn(TurnState.FINALIZED)

    def apply(self, event: Event) -> None:
        """Dispatch one transport event."""
        if isinstance(event, Delta):
            self.apply_delta(event.text)
        elif isinstance(event, SessionId):
            self.apply_session_id(event.session_id)
        elif isinstance(event, StreamComplete):
            self.finalize(event.text)
        elif isinstance(event, StreamError):
            self.fail(event.message)
        else:
            raise TypeError(f"Unknown event type: {type(event).__name__}")

    # --------- internals ----------
    def _end_turn(self, outcome: TurnState) -> Message:
        final = replace(self._target)
        self._state = outcome
        self.last_outcome = outcome
        self._target = None
        self._state = TurnState.IDLE
        logger.debug("Turn %s: %s", outcome.value, final.id)
        return final

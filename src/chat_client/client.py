"""One chat conversation: transcript + transport + persisted session id."""
from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import aclosing, closing
from typing import Any, Callable, Dict, Optional

from .config import client_timeout
from .events import TERMINAL_EVENTS, Event
from .storage import SessionStore
from .transcript import Attachment, Message, Role, Transcript
from .transport import ChatTransport

logger = logging.getLogger(__name__)

EventCallback = Callable[[Event], None]


class ChatSession:
    """Run chat turns against a backend and keep the transcript current.

    Each turn is driven sequentially: every event is applied to the
    transcript in arrival order before the next one is read.
    """

    def __init__(
        self,
        transport: ChatTransport,
        *,
        transcript: Optional[Transcript] = None,
        store: Optional[SessionStore] = None,
        greeting: Optional[str] = None,
    ) -> None:
        self.transport = transport
        self.store = store
        restored = store.get() if store is not None else None
        if transcript is None:
            transcript = Transcript(greeting=greeting, session_id=restored)
        elif restored and transcript.session_id is None:
            transcript.apply_session_id(restored)
        if store is not None:
            transcript.on_session_change = store.set
        self.transcript = transcript

    @property
    def session_id(self) -> Optional[str]:
        return self.transcript.session_id

    def reset_session(self) -> None:
        """Forget the current session id (the next turn starts a new one)."""
        self.transcript.apply_session_id(None)

    # --------- sync ----------
    def send(
        self,
        text: str,
        attachment: Optional[Attachment] = None,
        *,
        on_event: Optional[EventCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Optional[Message]:
        """Run one turn and return the final assistant (or error) message."""
        transcript = self.transcript
        user, placeholder = transcript.submit(text, attachment)
        terminal = None
        try:
            events = self.transport.stream_events(
                user.content, self.session_id, attachment, cancel=cancel, message_id=placeholder.id
            )
            with closing(events):
                for event in events:
                    transcript.apply(event)
                    if on_event is not None:
                        on_event(event)
                    if isinstance(event, TERMINAL_EVENTS):
                        terminal = event
                        break
        finally:
            if self._still_in_flight(placeholder):
                # stream ended without a terminal event: cancelled or abandoned
                transcript.cancel()
        if terminal is None:
            logger.info("Turn %s ended without completion", placeholder.id)
        return self._last_assistant()

    # --------- async ----------
    async def asend(
        self,
        text: str,
        attachment: Optional[Attachment] = None,
        *,
        on_event: Optional[EventCallback] = None,
    ) -> Optional[Message]:
        """Async twin of :meth:`send`.

        Cancelling the awaiting task stops the read; text already received
        stays in the transcript and ``CancelledError`` propagates.
        """
        transcript = self.transcript
        user, placeholder = transcript.submit(text, attachment)
        try:
            events = self.transport.astream_events(
                user.content, self.session_id, attachment, message_id=placeholder.id
            )
            async with aclosing(events):
                async for event in events:
                    transcript.apply(event)
                    if on_event is not None:
                        on_event(event)
                    if isinstance(event, TERMINAL_EVENTS):
                        break
        except asyncio.CancelledError:
            logger.info("Turn %s cancelled", placeholder.id)
            raise
        finally:
            if self._still_in_flight(placeholder):
                transcript.cancel()
        return self._last_assistant()

    def _still_in_flight(self, placeholder: Message) -> bool:
        current = self.transcript.in_flight
        return current is not None and current.id == placeholder.id

    def _last_assistant(self) -> Optional[Message]:
        for message in reversed(self.transcript.messages):
            if message.role is Role.ASSISTANT:
                return message
        return None

    def close(self) -> None:
        self.transport.close()


def session_from_config(cfg: Dict[str, Any], **transport_kwargs: Any) -> ChatSession:
    """Build a :class:`ChatSession` from a loaded config dict."""
    client_cfg = cfg.get("client", {}) or {}
    session_cfg = cfg.get("session", {}) or {}
    transport = ChatTransport(
        str(client_cfg.get("api_base", "")),
        endpoint=str(client_cfg.get("endpoint", "/chatagent")),
        timeout=client_timeout(cfg),
        **transport_kwargs,
    )
    store = None
    if session_cfg.get("store_path"):
        store = SessionStore(session_cfg["store_path"], key=session_cfg.get("key", "chat_session_id"))
    greeting = (cfg.get("chat", {}) or {}).get("greeting")
    return ChatSession(transport, store=store, greeting=greeting)

"""Drive a chat request over HTTP and turn the reply into events.

Both a true incremental body and a single non-streamed JSON payload come out
as the same event sequence: ``Delta`` / ``SessionId`` events followed by
exactly one ``StreamComplete`` or ``StreamError``. Nothing raises past this
module except task cancellation.
"""
from __future__ import annotations

import json
import logging
import mimetypes
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterable, AsyncIterator, Dict, Iterable, Iterator, List, Optional, Tuple

import httpx

from .decoder import TextChunkDecoder
from .events import Event, SessionId, StreamComplete, StreamError
from .framing import extract_records
from .records import interpret, interpret_payload
from .transcript import Attachment

logger = logging.getLogger(__name__)

ACCEPT = "text/event-stream, text/plain, application/json"
DEFAULT_ENDPOINT = "/chatagent"
DEFAULT_TIMEOUT = httpx.Timeout(connect=5.0, read=60.0, write=30.0, pool=5.0)
JSON_MEDIA_TYPE = "application/json"


# -----------------------------
# Per-stream state
# -----------------------------
@dataclass
class StreamState:
    """Decoding state for one response body; discarded when it ends."""
    message_id: Optional[str] = None
    encoding: Optional[str] = None
    terminated: bool = False
    decoder: TextChunkDecoder = field(init=False)

    def __post_init__(self) -> None:
        self.decoder = TextChunkDecoder(self.encoding)

    @property
    def pending(self) -> bytes:
        return self.decoder.pending

    def _events_for(self, text: str) -> Iterator[Event]:
        for record in extract_records(text):
            yield from interpret(record).events()

    def feed(self, chunk: bytes) -> Iterator[Event]:
        if self.terminated:
            raise RuntimeError("Stream already terminated")
        return self._events_for(self.decoder.decode(chunk))

    def finish(self) -> Iterator[Event]:
        """Flush the byte tail and close the stream with ``StreamComplete``."""
        if self.terminated:
            return
        tail = self.decoder.decode(b"", final=True)
        self.terminated = True
        yield from self._events_for(tail)
        yield StreamComplete()


def iter_events(chunks: Iterable[bytes], *, encoding: Optional[str] = None) -> Iterator[Event]:
    """Events for a sequence of raw body chunks."""
    state = StreamState(encoding=encoding)
    for chunk in chunks:
        yield from state.feed(chunk)
    yield from state.finish()


async def aiter_events(
    chunks: AsyncIterable[bytes],
    *,
    encoding: Optional[str] = None,
    message_id: Optional[str] = None,
) -> AsyncIterator[Event]:
    state = StreamState(message_id=message_id, encoding=encoding)
    async for chunk in chunks:
        for event in state.feed(chunk):
            yield event
    for event in state.finish():
        yield event


def payload_events(body: bytes, *, encoding: Optional[str] = None) -> List[Event]:
    """Events for a complete, non-streamed JSON body."""
    text = TextChunkDecoder(encoding).decode(body, final=True)
    try:
        value: Any = json.loads(text)
    except ValueError:
        logger.debug("Non-streamed body is not valid JSON; using it as literal text")
        value = text.strip()
    result = interpret_payload(value)
    events: List[Event] = []
    if result.session_id is not None:
        events.append(SessionId(result.session_id))
    events.append(StreamComplete(text=result.delta))
    return events


# -----------------------------
# Helpers
# -----------------------------
def _media_type(response: httpx.Response) -> str:
    return response.headers.get("content-type", "").split(";")[0].strip().lower()


def _status_error(response: httpx.Response) -> StreamError:
    return StreamError(f"{response.status_code} {response.reason_phrase}".strip())


def _describe(exc: BaseException) -> str:
    text = str(exc).strip()
    return text or type(exc).__name__


def _form(user_content: str, session_id: Optional[str]) -> Dict[str, str]:
    data = {"userchat": user_content}
    if session_id:
        data["session_id"] = session_id
    return data


def _files(attachment: Optional[Attachment]) -> Optional[Dict[str, Tuple[str, bytes, str]]]:
    if attachment is None or not attachment.path:
        return None
    content = Path(attachment.path).read_bytes()
    ctype = attachment.content_type or mimetypes.guess_type(attachment.name)[0] or "application/octet-stream"
    return {"file": (attachment.name, content, ctype)}


# -----------------------------
# Transport adapter
# -----------------------------
class ChatTransport:
    """POSTs a chat turn and yields reply events.

    Parameters
    ----------
    api_base : str
        Backend base URL. Ignored for a caller-supplied client, which is
        expected to carry its own ``base_url``.
    endpoint : str
        Path of the chat endpoint.
    client, async_client : httpx.Client / httpx.AsyncClient | None
        Optional pre-built clients (tests, shared pools). Clients created
        here are closed by :meth:`close` / :meth:`aclose`.
    """

    def __init__(
        self,
        api_base: str = "",
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: Optional[httpx.Timeout] = None,
        client: Optional[httpx.Client] = None,
        async_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_base = api_base
        self.endpoint = endpoint
        self.timeout = timeout or DEFAULT_TIMEOUT
        self._client = client
        self._async_client = async_client
        self._owns_client = client is None
        self._owns_async_client = async_client is None

    # --------- clients ----------
    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(base_url=self.api_base, timeout=self.timeout)
        return self._client

    @property
    def async_client(self) -> httpx.AsyncClient:
        if self._async_client is None:
            self._async_client = httpx.AsyncClient(base_url=self.api_base, timeout=self.timeout)
        return self._async_client

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    async def aclose(self) -> None:
        if self._owns_async_client and self._async_client is not None:
            await self._async_client.aclose()
            self._async_client = None

    def _request_kwargs(self, user_content: str, session_id: Optional[str], attachment: Optional[Attachment]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "data": _form(user_content, session_id),
            "headers": {"Accept": ACCEPT},
        }
        files = _files(attachment)
        if files:
            kwargs["files"] = files
        return kwargs

    # --------- sync ----------
    def stream_events(
        self,
        user_content: str,
        session_id: Optional[str] = None,
        attachment: Optional[Attachment] = None,
        cancel: Optional[threading.Event] = None,
        message_id: Optional[str] = None,
    ) -> Iterator[Event]:
        """Send one turn and yield its events as the body arrives.

        If ``cancel`` is set between reads, the response is closed and the
        generator ends without a terminal event.
        """
        try:
            kwargs = self._request_kwargs(user_content, session_id, attachment)
            with self.client.stream("POST", self.endpoint, **kwargs) as response:
                if not response.is_success:
                    logger.warning("Chat request failed: %s %s", response.status_code, response.reason_phrase)
                    yield _status_error(response)
                    return
                encoding = response.charset_encoding
                if _media_type(response) == JSON_MEDIA_TYPE:
                    yield from payload_events(response.read(), encoding=encoding)
                    return
                state = StreamState(message_id=message_id, encoding=encoding)
                for chunk in response.iter_bytes():
                    if cancel is not None and cancel.is_set():
                        logger.info(
                            "Stream for %s cancelled; discarding %d pending byte(s)",
                            state.message_id,
                            len(state.pending),
                        )
                        return
                    yield from state.feed(chunk)
                yield from state.finish()
        except httpx.HTTPError as exc:
            logger.warning("Chat transport error: %s", _describe(exc))
            yield StreamError(_describe(exc))
        except Exception as exc:
            logger.exception("Unexpected failure while streaming chat reply")
            yield StreamError(_describe(exc))

    # --------- async ----------
    async def astream_events(
        self,
        user_content: str,
        session_id: Optional[str] = None,
        attachment: Optional[Attachment] = None,
        message_id: Optional[str] = None,
    ) -> AsyncIterator[Event]:
        """Async twin of :meth:`stream_events`; cancel by cancelling the task."""
        try:
            kwargs = self._request_kwargs(user_content, session_id, attachment)
            async with self.async_client.stream("POST", self.endpoint, **kwargs) as response:
                if not response.is_success:
                    logger.warning("Chat request failed: %s %s", response.status_code, response.reason_phrase)
                    yield _status_error(response)
                    return
                encoding = response.charset_encoding
                if _media_type(response) == JSON_MEDIA_TYPE:
                    for event in payload_events(await response.aread(), encoding=encoding):
                        yield event
                    return
                async for event in aiter_events(response.aiter_bytes(), encoding=encoding, message_id=message_id):
                    yield event
        except httpx.HTTPError as exc:
            logger.warning("Chat transport error: %s", _describe(exc))
            yield StreamError(_describe(exc))
        except Exception as exc:
            logger.exception("Unexpected failure while streaming chat reply")
            yield StreamError(_describe(exc))

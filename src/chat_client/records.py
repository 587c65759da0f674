"""Interpret one framed record as a session id and/or a text delta.

A record is parsed once into either a ``Structured`` field set (a JSON
object) or a ``Literal`` text fragment. Field lookups follow a fixed
priority that mirrors what the backends in the wild actually send:

- session id: ``session_id`` then ``sessionId``
- text: ``response``, else the first non-empty of ``content``, ``message``,
  ``reply``

An object without any of those fields yields nothing; it is never dumped
into the transcript as raw JSON.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union

from .events import Delta, Event, SessionId

logger = logging.getLogger(__name__)

SESSION_FIELDS = ("session_id", "sessionId")
PRIMARY_TEXT_FIELD = "response"
FALLBACK_TEXT_FIELDS = ("content", "message", "reply")


# -----------------------------
# Decoded record variants
# -----------------------------
@dataclass(frozen=True)
class Structured:
    fields: Mapping[str, Any]


@dataclass(frozen=True)
class Literal:
    text: str


DecodedRecord = Union[Structured, Literal]


@dataclass(frozen=True)
class RecordResult:
    session_id: Optional[str] = None
    delta: Optional[str] = None

    @property
    def empty(self) -> bool:
        return self.session_id is None and not self.delta

    def events(self) -> List[Event]:
        """Session id first, then the delta."""
        out: List[Event] = []
        if self.session_id is not None:
            out.append(SessionId(self.session_id))
        if self.delta:
            out.append(Delta(self.delta))
        return out


# -----------------------------
# Parsing
# -----------------------------
def _literal_from_value(value: Any, source: str) -> Literal:
    if isinstance(value, str):
        return Literal(value)
    # numbers, booleans, null and arrays keep the text the server wrote
    return Literal(source)


def parse_record(record: str) -> DecodedRecord:
    """Parse a whole record; anything that is not JSON is literal text."""
    try:
        value = json.loads(record)
    except ValueError:
        return Literal(record)
    if isinstance(value, dict):
        return Structured(value)
    return _literal_from_value(value, record)


def _session_id(fields: Mapping[str, Any]) -> Optional[str]:
    for name in SESSION_FIELDS:
        value = fields.get(name)
        if value is None:
            continue
        if isinstance(value, str) and value:
            return value
        logger.debug("Ignoring non-string session id in field %r: %r", name, value)
        return None
    return None


def _text(fields: Mapping[str, Any]) -> Optional[str]:
    primary = fields.get(PRIMARY_TEXT_FIELD)
    if isinstance(primary, str):
        return primary or None
    for name in FALLBACK_TEXT_FIELDS:
        value = fields.get(name)
        if isinstance(value, str) and value:
            return value
    return None


def interpret_fields(fields: Mapping[str, Any]) -> RecordResult:
    result = RecordResult(session_id=_session_id(fields), delta=_text(fields))
    if result.empty:
        logger.debug("Dropping record with no recognised fields: keys=%s", sorted(fields))
    return result


def interpret_decoded(decoded: DecodedRecord) -> RecordResult:
    if isinstance(decoded, Structured):
        return interpret_fields(decoded.fields)
    return RecordResult(delta=decoded.text or None)


def interpret(record: str) -> RecordResult:
    """Interpret one framed record string."""
    return interpret_decoded(parse_record(record))


def interpret_payload(value: Any) -> RecordResult:
    """Interpret an already-parsed, non-streamed response body."""
    if isinstance(value, dict):
        return interpret_fields(value)
    if isinstance(value, str):
        return RecordResult(delta=value or None)
    if value is None:
        return RecordResult()
    return RecordResult(delta=json.dumps(value, ensure_ascii=False))

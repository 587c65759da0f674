from __future__ import annotations

from chat_client.events import Delta, SessionId
from chat_client.records import (
    Literal,
    RecordResult,
    Structured,
    interpret,
    interpret_payload,
    parse_record,
)


def test_parse_record_variants():
    assert parse_record('{"a": 1}') == Structured({"a": 1})
    assert parse_record("hello there") == Literal("hello there")
    assert parse_record('"quoted"') == Literal("quoted")
    assert parse_record("42") == Literal("42")


def test_response_field_wins_over_fallbacks():
    record = '{"response": "primary", "content": "c", "message": "m", "reply": "r"}'
    assert interpret(record).delta == "primary"


def test_fallback_priority_order():
    assert interpret('{"content": "c", "message": "m", "reply": "r"}').delta == "c"
    assert interpret('{"message": "m", "reply": "r"}').delta == "m"
    assert interpret('{"reply": "r"}').delta == "r"


def test_fallback_skips_empty_and_non_string_fields():
    assert interpret('{"content": "", "message": 5, "reply": "r"}').delta == "r"
    assert interpret('{"response": 7, "content": "c"}').delta == "c"


def test_empty_response_does_not_fall_back():
    assert interpret('{"response": "", "content": "c"}').delta is None


def test_non_json_line_is_returned_verbatim():
    for line in ["plain prose", "{not json", "  padded  ", "data: nested"]:
        assert interpret(line) == RecordResult(delta=line)


def test_non_object_json_is_stringified():
    assert interpret('"just text"').delta == "just text"
    assert interpret("3.5").delta == "3.5"
    assert interpret("true").delta == "true"
    assert interpret("[1, 2]").delta == "[1, 2]"


def test_empty_json_string_produces_no_event():
    result = interpret('""')
    assert result.empty
    assert result.events() == []


def test_session_only_record():
    result = interpret('{"session_id": "abc123"}')
    assert result == RecordResult(session_id="abc123")
    assert result.events() == [SessionId("abc123")]


def test_session_id_field_variants():
    assert interpret('{"sessionId": "camel"}').session_id == "camel"
    assert interpret('{"session_id": "snake", "sessionId": "camel"}').session_id == "snake"
    assert interpret('{"session_id": null, "sessionId": "camel"}').session_id == "camel"
    assert interpret('{"session_id": 12}').session_id is None
    assert interpret('{"session_id": ""}').session_id is None


def test_unrecognised_object_is_dropped():
    result = interpret('{"type": "ping", "data": {"response": "nested"}}')
    assert result.empty
    assert result.events() == []


def test_events_put_session_before_delta():
    result = interpret('{"response": "Hi", "sessionId": "s1"}')
    assert result.events() == [SessionId("s1"), Delta("Hi")]


def test_concatenated_objects_fall_back_to_literal():
    line = '{"response": "a"}{"response": "b"}'
    assert interpret(line).delta == line


def test_interpret_payload():
    assert interpret_payload({"response": "Done", "session_id": "x"}) == RecordResult(session_id="x", delta="Done")
    assert interpret_payload({"reply": "r"}).delta == "r"
    assert interpret_payload("bare").delta == "bare"
    assert interpret_payload(None).empty
    assert interpret_payload({"other": 1}).empty

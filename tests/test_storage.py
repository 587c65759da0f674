from __future__ import annotations

import json
from pathlib import Path

from chat_client.storage import SessionStore


def test_session_store_roundtrip(tmp_path: Path):
    store = SessionStore(tmp_path / "nested" / "session.json")
    assert store.get() is None
    store.set("abc123")
    assert store.get() == "abc123"
    assert SessionStore(tmp_path / "nested" / "session.json").get() == "abc123"


def test_set_none_removes_key_but_keeps_others(tmp_path: Path):
    path = tmp_path / "session.json"
    path.write_text(json.dumps({"chat_session_id": "x", "theme": "dark"}), encoding="utf-8")
    store = SessionStore(path)
    store.clear()
    assert store.get() is None
    assert json.loads(path.read_text(encoding="utf-8")) == {"theme": "dark"}


def test_custom_key(tmp_path: Path):
    store = SessionStore(tmp_path / "s.json", key="other")
    store.set("v")
    assert json.loads((tmp_path / "s.json").read_text(encoding="utf-8")) == {"other": "v"}


def test_unwritable_location_is_logged_not_raised(tmp_path: Path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = SessionStore(blocker / "session.json")
    store.set("abc")
    assert store.get() is None
    assert "Could not write session store" in caplog.text


def test_corrupt_file_is_moved_aside(tmp_path: Path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")
    store = SessionStore(path)
    assert store.get() is None
    assert (tmp_path / "session.corrupt.json").exists()
    store.set("fresh")
    assert store.get() == "fresh"

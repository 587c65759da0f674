"""Small JSON key-value file used to persist the chat session id."""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SESSION_KEY = "chat_session_id"


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", delete=False, dir=str(path.parent)) as tmp:
        tmp.write(text)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_name = tmp.name
    os.replace(tmp_name, path)


class SessionStore:
    """Persist one string value under a fixed key in a JSON file.

    The file may hold other keys; they are preserved on write.
    """

    def __init__(self, path: str | Path, key: str = SESSION_KEY) -> None:
        self.path = Path(path)
        self.key = key
        self._lock = threading.RLock()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            # Corruption fallback: keep a backup and start fresh.
            bad = self.path.with_suffix(".corrupt.json")
            logger.warning("Session store %s unreadable (%s); moved to %s", self.path, e, bad)
            try:
                self.path.replace(bad)
            except OSError:
                logger.debug("Could not move corrupt session store aside", exc_info=True)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self) -> Optional[str]:
        with self._lock:
            value = self._load().get(self.key)
        return value if isinstance(value, str) and value else None

    def set(self, value: Optional[str]) -> None:
        """Store ``value``; ``None`` removes the key.

        Write failures are logged and otherwise ignored; the caller keeps
        its in-memory value.
        """
        with self._lock:
            data = self._load()
            if value:
                data[self.key] = value
            else:
                data.pop(self.key, None)
            try:
                _atomic_write_text(self.path, json.dumps(data, ensure_ascii=False, indent=2))
            except OSError:
                logger.warning("Could not write session store %s", self.path, exc_info=True)

    def clear(self) -> None:
        self.set(None)

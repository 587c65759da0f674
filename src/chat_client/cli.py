"""Terminal chat front-end for the agent backend."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .client import ChatSession, session_from_config
from .config import load_config
from .events import Delta, Event, SessionId, StreamComplete, StreamError
from .transcript import ERROR_PREFIX, Attachment, Role, TranscriptBusyError

logger = logging.getLogger(__name__)

PROMPT = "you> "
HELP = "Commands: /attach PATH, /new (start a new session), /quit"


class TerminalRenderer:
    """Print reply events as they arrive."""

    def __init__(self, out=None) -> None:
        self.out = out or sys.stdout
        self._started = False

    def begin(self) -> None:
        self._started = False
        self.out.write("agent> ")
        self.out.flush()

    def __call__(self, event: Event) -> None:
        if isinstance(event, Delta):
            self._started = True
            self.out.write(event.text)
        elif isinstance(event, SessionId):
            logger.info("Session: %s", event.session_id)
        elif isinstance(event, StreamComplete):
            if event.text and not self._started:
                self.out.write(event.text)
            self.out.write("\n")
        elif isinstance(event, StreamError):
            self.out.write(f"{ERROR_PREFIX}{event.message}\n")
        self.out.flush()


def _attachment(path: str) -> Attachment:
    p = Path(path).expanduser()
    if not p.is_file():
        raise FileNotFoundError(f"No such file: {p}")
    return Attachment(name=p.name, path=str(p))


def run_turn(session: ChatSession, text: str, attachment: Optional[Attachment], renderer: TerminalRenderer) -> None:
    renderer.begin()
    try:
        session.send(text, attachment, on_event=renderer)
    except KeyboardInterrupt:
        renderer.out.write("\n[cancelled]\n")
        renderer.out.flush()


def repl(session: ChatSession, renderer: TerminalRenderer, attachment: Optional[Attachment] = None) -> None:
    for message in session.transcript:
        if message.role is Role.SYSTEM:
            renderer.out.write(f"{message.content}\n")
    if session.session_id:
        renderer.out.write(f"Session: {session.session_id}\n")
    renderer.out.write(HELP + "\n")
    renderer.out.flush()

    while True:
        try:
            line = input(PROMPT)
        except (EOFError, KeyboardInterrupt):
            renderer.out.write("\n")
            return
        text = line.strip()
        if text in {"/quit", "/exit"}:
            return
        if text == "/new":
            session.reset_session()
            renderer.out.write("Started a new session.\n")
            continue
        if text == "/attach":
            renderer.out.write("Usage: /attach PATH\n")
            continue
        if text.startswith("/attach "):
            try:
                attachment = _attachment(text[len("/attach "):].strip())
            except FileNotFoundError as e:
                renderer.out.write(f"{e}\n")
                continue
            renderer.out.write(f"Attached {attachment.name}\n")
            continue
        if not text and attachment is None:
            continue
        try:
            run_turn(session, text, attachment, renderer)
        except (ValueError, TranscriptBusyError) as e:
            renderer.out.write(f"{e}\n")
        attachment = None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Chat with the agent backend from a terminal.")
    parser.add_argument("message", nargs="*", help="Send one message and exit (default: interactive).")
    parser.add_argument(
        "--config",
        type=str,
        default=os.environ.get("CHAT_CLIENT_CONFIG"),
        help="Path to a YAML config file (default: config/default.yaml)",
    )
    parser.add_argument("--api-base", type=str, default=None, help="Override client.api_base")
    parser.add_argument("--attach", type=str, default=None, help="File to send with the first message")
    parser.add_argument("--new-session", action="store_true", help="Forget the stored session id first")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (default from config)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config)
    if args.api_base:
        cfg.setdefault("client", {})["api_base"] = args.api_base

    level = (args.log_level or cfg.get("logging", {}).get("level") or "WARNING").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    session = session_from_config(cfg)
    try:
        if args.new_session:
            session.reset_session()
        attachment = _attachment(args.attach) if args.attach else None
        renderer = TerminalRenderer()
        if args.message:
            run_turn(session, " ".join(args.message), attachment, renderer)
            last = session.transcript.messages[-1]
            return 1 if last.error else 0
        repl(session, renderer, attachment)
        return 0
    except FileNotFoundError as e:
        print(e, file=sys.stderr)
        return 2
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())

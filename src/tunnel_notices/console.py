"""Human-readable rewriting of a notice stream for console output."""

from __future__ import annotations

import json
import sys
from typing import TextIO

from rich.console import Console
from rich.text import Text

from .envelope import DecodedNotice, NoticeDecodeError, decode_envelope, raw_members
from .receiver import NoticeReceiver


def _member(members: dict[str, str], name: str) -> object:
    try:
        return json.loads(members[name])
    except (KeyError, ValueError, RecursionError):
        return None


def _recover(record: bytes) -> DecodedNotice:
    """Best-effort field recovery for a record that failed strict decoding."""
    try:
        members = raw_members(record.decode("utf-8"))
    except (ValueError, RecursionError):
        return DecodedNotice(notice_type="", show_user=False, raw_payload="", timestamp="")

    notice_type = _member(members, "noticeType")
    timestamp = _member(members, "timestamp")
    return DecodedNotice(
        notice_type=notice_type if isinstance(notice_type, str) else "",
        show_user=_member(members, "showUser") is True,
        raw_payload=members.get("data", ""),
        timestamp=timestamp if isinstance(timestamp, str) else "",
    )


def console_for(stream: TextIO) -> Console:
    return Console(
        file=stream,
        color_system="auto" if stream.isatty() else None,
        highlight=False,
        markup=False,
        emoji=False,
        soft_wrap=True,
    )


class NoticeConsoleRewriter:
    """Receiver callback printing ``timestamp kind data`` for each notice.

    The data payload is printed as JSON, unchanged. Records that fail to
    decode are still printed with whatever fields could be recovered.
    """

    def __init__(self, console: Console) -> None:
        self._console = console

    def __call__(self, record: bytes) -> None:
        try:
            notice = decode_envelope(record)
        except NoticeDecodeError:
            notice = _recover(record)

        line = Text.assemble(
            (notice.timestamp, "dim"),
            " ",
            (notice.notice_type, "bold yellow" if notice.show_user else "bold"),
            " ",
            notice.raw_payload,
        )
        self._console.print(line)


def new_console_rewriter(target: TextIO | Console | None = None) -> NoticeReceiver:
    """Return a receiver that rewrites notices onto ``target`` (stdout by default)."""
    console = target if isinstance(target, Console) else console_for(target or sys.stdout)
    return NoticeReceiver(NoticeConsoleRewriter(console))

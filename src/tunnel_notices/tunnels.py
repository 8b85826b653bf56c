"""Tunnel-count extraction and connect/disconnect tracking for notice consumers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from .envelope import NoticeDecodeError, decode_envelope, extract_field
from .models import NoticeType

_logger = logging.getLogger("tunnel_notices.tunnels")


def extract_tunnel_count(record: bytes | str) -> tuple[int, bool]:
    """Return ``(count, True)`` for a ``Tunnels`` notice, ``(0, False)`` for anything else."""
    try:
        decoded = decode_envelope(record)
    except NoticeDecodeError:
        return 0, False
    value, ok = extract_field(decoded.notice_type, decoded.raw_payload, NoticeType.TUNNELS, "count")
    if not ok or isinstance(value, bool) or not isinstance(value, int):
        return 0, False
    return value, True


@dataclass(slots=True, frozen=True)
class TunnelTransition:
    """A change between the disconnected and connected states."""

    connected: bool
    count: int
    previous: int | None


class TunnelStateMonitor:
    """Receiver callback that reports connect/disconnect transitions.

    The first ``Tunnels`` notice always reports; later ones report only when
    the count crosses between zero and non-zero.
    """

    def __init__(self, on_change: Callable[[TunnelTransition], None]) -> None:
        self._on_change = on_change
        self._count: int | None = None

    @property
    def count(self) -> int | None:
        return self._count

    @property
    def connected(self) -> bool:
        return bool(self._count)

    def __call__(self, record: bytes) -> None:
        count, ok = extract_tunnel_count(record)
        if not ok:
            return

        previous = self._count
        self._count = count
        if previous is not None and (previous > 0) == (count > 0):
            return

        transition = TunnelTransition(connected=count > 0, count=count, previous=previous)
        _logger.info("tunnel_state_changed", extra={"connected": transition.connected, "count": count})
        self._on_change(transition)

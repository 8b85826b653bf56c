"""Reassembles newline-delimited notice records from an arbitrarily chunked byte stream."""

from __future__ import annotations

import logging
import threading
from typing import BinaryIO, Callable

RecordCallback = Callable[[bytes], None]

_DELIMITER = b"\n"

_logger = logging.getLogger("tunnel_notices.receiver")


class NoticeReceiver:
    """Byte sink that invokes ``callback`` once per complete notice record.

    Usable anywhere a writable binary stream is expected. Each record is passed
    without its trailing newline. The callback runs while the receiver lock is
    held and must not write back into the same receiver.
    """

    def __init__(self, callback: RecordCallback) -> None:
        self._callback = callback
        self._buffer = bytearray()
        self._lock = threading.Lock()

    @property
    def pending(self) -> bytes:
        """Bytes of an incomplete record retained for the next write."""
        with self._lock:
            return bytes(self._buffer)

    def write(self, chunk: bytes) -> int:
        """Buffer ``chunk`` and dispatch every record it completes.

        Always accepts the whole chunk.
        """
        with self._lock:
            self._buffer += chunk
            while True:
                index = self._buffer.find(_DELIMITER)
                if index == -1:
                    break
                record = bytes(self._buffer[:index])
                del self._buffer[: index + 1]
                self._callback(record)
        return len(chunk)

    def writable(self) -> bool:
        return True

    def flush(self) -> None:
        pass


def pump(stream: BinaryIO, receiver: NoticeReceiver, *, chunk_size: int = 4096) -> int:
    """Copy ``stream`` into ``receiver`` until EOF and return the byte count.

    A trailing partial record (no final newline) stays pending in the receiver.
    """
    # read1 returns as soon as some bytes arrive instead of waiting for a full chunk.
    read = getattr(stream, "read1", stream.read)
    total = 0
    while True:
        chunk = read(chunk_size)
        if not chunk:
            break
        total += receiver.write(chunk)
    if receiver.pending:
        _logger.info("notice_stream_truncated", extra={"pending_bytes": len(receiver.pending)})
    return total

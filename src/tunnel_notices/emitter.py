"""Notice emission: builds, serializes and writes one record per call.

Notices are JSON lines, for example::

    {"noticeType":"Info","showUser":false,"data":{"message":"shutdown operate tunnel"},"timestamp":"2015-01-28T17:35:13Z"}

- ``noticeType`` names the kind and therefore the shape of ``data``.
- ``data`` is the kind-specific payload (see :mod:`tunnel_notices.models`).
- ``showUser`` marks notices meant for the end user, e.g. ``SocksProxyPortInUse``.
  Clients should expect new ``showUser`` notices and show at least the raw notice.
- ``timestamp`` is UTC, RFC3339.
"""

from __future__ import annotations

import io
import logging
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Protocol

from pydantic_core import PydanticSerializationError

from .envelope import NoticeEnvelope, encode_raw
from .models import (
    ActiveTunnelNotice,
    AlertNotice,
    CandidateServersNotice,
    ClientUpgradeAvailableNotice,
    ConnectingServerNotice,
    CoreVersionNotice,
    ErrorNotice,
    HomepageNotice,
    HttpProxyPortInUseNotice,
    InfoNotice,
    ListeningHttpProxyPortNotice,
    ListeningSocksProxyPortNotice,
    NoticePayload,
    NoticeType,
    SocksProxyPortInUseNotice,
    SplitTunnelRegionNotice,
    TunnelsNotice,
    UntunneledNotice,
)

RECORD_DELIMITER = "\n"

_logger = logging.getLogger("tunnel_notices.emitter")


class NoticeSink(Protocol):
    """Destination stream for notice records."""

    def write(self, data: Any) -> Any:
        """Write one complete record."""


def rfc3339_now(moment: datetime | None = None) -> str:
    ts = moment or datetime.now(timezone.utc)
    return ts.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _type_name(notice_type: NoticeType | str) -> str:
    return notice_type.value if isinstance(notice_type, NoticeType) else str(notice_type)


def _pair_fields(fields: tuple[Any, ...]) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for index in range(0, len(fields) - 1, 2):
        name = fields[index]
        if isinstance(name, str):
            data[name] = fields[index + 1]
    return data


def _format_message(message: str, args: tuple[Any, ...]) -> str:
    if not args:
        return message
    try:
        return message % args
    except (TypeError, ValueError):
        return f"{message} {args!r}"


def _fallback_record(error: Exception, timestamp: str) -> str:
    # Built from strings only; the message is JSON-escaped.
    message = encode_raw(f"{type(error).__name__}: {error}")
    return (
        f'{{"noticeType":"{NoticeType.ALERT.value}","showUser":false,'
        f'"data":{{"message":{message}}},"timestamp":"{timestamp}"}}'
    )


class NoticeEmitter:
    """Serializes notices to a swappable sink under a single lock.

    The lock covers serialization, the write itself and sink replacement, so
    records never interleave and never straddle two sinks. Records appear in
    lock acquisition order.
    """

    def __init__(
        self,
        sink: NoticeSink | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._sink = sink
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()

    @property
    def sink(self) -> NoticeSink:
        """Current sink; standard error unless replaced."""
        with self._lock:
            return self._current_sink()

    def set_output(self, sink: NoticeSink) -> None:
        """Send subsequent notices to ``sink``. Earlier output is left as-is."""
        with self._lock:
            self._sink = sink

    def emit(self, notice_type: NoticeType | str, show_user: bool, *fields: Any) -> None:
        """Emit a notice from alternating field name/value arguments.

        Pairs whose name is not a string are skipped and a trailing value
        without a partner is ignored.
        """
        self._output(_type_name(notice_type), show_user, _pair_fields(fields))

    def publish(self, payload: NoticePayload, *, show_user: bool | None = None) -> None:
        """Emit a typed payload using its kind's default visibility unless overridden."""
        visible = payload.show_user if show_user is None else show_user
        self._output(payload.notice_type.value, visible, payload.data())

    def _output(self, notice_type: str, show_user: bool, data: dict[str, Any]) -> None:
        serialization_error: Exception | None = None
        write_error: Exception | None = None
        with self._lock:
            timestamp = rfc3339_now(self._clock())
            try:
                line = NoticeEnvelope(
                    notice_type=notice_type,
                    show_user=show_user,
                    data=data,
                    timestamp=timestamp,
                ).to_json()
            except (PydanticSerializationError, TypeError, ValueError) as exc:
                serialization_error = exc
                line = _fallback_record(exc, timestamp)
            try:
                self._write_line(self._current_sink(), line + RECORD_DELIMITER)
            except (OSError, ValueError) as exc:
                write_error = exc

        if serialization_error is not None:
            _logger.warning(
                "notice_serialization_failed",
                extra={"notice_type": notice_type, "error": str(serialization_error)},
            )
        if write_error is not None:
            _logger.warning("notice_write_failed", extra={"notice_type": notice_type, "error": str(write_error)})

    def _current_sink(self) -> NoticeSink:
        return self._sink if self._sink is not None else sys.stderr

    @staticmethod
    def _write_line(sink: NoticeSink, line: str) -> None:
        if isinstance(sink, io.TextIOBase):
            sink.write(line)
        else:
            sink.write(line.encode("utf-8"))
        flush = getattr(sink, "flush", None)
        if callable(flush):
            flush()

    def notice_info(self, message: str, *args: Any) -> None:
        self.publish(InfoNotice(message=_format_message(message, args)))

    def notice_alert(self, message: str, *args: Any) -> None:
        self.publish(AlertNotice(message=_format_message(message, args)))

    def notice_error(self, message: str, *args: Any) -> None:
        self.publish(ErrorNotice(message=_format_message(message, args)))

    def notice_core_version(self, version: str) -> None:
        self.publish(CoreVersionNotice(version=version))

    def notice_candidate_servers(self, region: str, protocol: str, count: int) -> None:
        self.publish(CandidateServersNotice(region=region, protocol=protocol, count=count))

    def notice_connecting_server(self, ip_address: str, region: str, protocol: str, fronting_address: str) -> None:
        self.publish(
            ConnectingServerNotice(
                ip_address=ip_address,
                region=region,
                protocol=protocol,
                fronting_address=fronting_address,
            )
        )

    def notice_active_tunnel(self, ip_address: str) -> None:
        self.publish(ActiveTunnelNotice(ip_address=ip_address))

    def notice_socks_proxy_port_in_use(self, port: int) -> None:
        self.publish(SocksProxyPortInUseNotice(port=port))

    def notice_listening_socks_proxy_port(self, port: int) -> None:
        self.publish(ListeningSocksProxyPortNotice(port=port))

    def notice_http_proxy_port_in_use(self, port: int) -> None:
        self.publish(HttpProxyPortInUseNotice(port=port))

    def notice_listening_http_proxy_port(self, port: int) -> None:
        self.publish(ListeningHttpProxyPortNotice(port=port))

    def notice_client_upgrade_available(self, version: str) -> None:
        self.publish(ClientUpgradeAvailableNotice(version=version))

    def notice_homepage(self, url: str) -> None:
        self.publish(HomepageNotice(url=url))

    def notice_tunnels(self, count: int) -> None:
        self.publish(TunnelsNotice(count=count))

    def notice_untunneled(self, address: str) -> None:
        self.publish(UntunneledNotice(address=address))

    def notice_split_tunnel_region(self, region: str) -> None:
        self.publish(SplitTunnelRegionNotice(region=region))


def open_notice_output(target: str) -> NoticeSink:
    """Resolve ``stderr``, ``stdout`` or a file path to a notice sink."""
    normalized = target.strip()
    if normalized.lower() == "stderr":
        return sys.stderr
    if normalized.lower() == "stdout":
        return sys.stdout
    path = Path(normalized).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path.open("ab")


_default_emitter = NoticeEmitter()


def get_default_emitter() -> NoticeEmitter:
    """Process-wide emitter used by the module-level ``notice_*`` functions."""
    return _default_emitter


def set_notice_output(sink: NoticeSink) -> None:
    """Replace the process-wide notice sink. Notices go to stderr by default."""
    _default_emitter.set_output(sink)


def notice_info(message: str, *args: Any) -> None:
    """Informational message."""
    _default_emitter.notice_info(message, *args)


def notice_alert(message: str, *args: Any) -> None:
    """Alert message; typically a recoverable error condition."""
    _default_emitter.notice_alert(message, *args)


def notice_error(message: str, *args: Any) -> None:
    """Error message; typically an unrecoverable error condition."""
    _default_emitter.notice_error(message, *args)


def notice_core_version(version: str) -> None:
    _default_emitter.notice_core_version(version)


def notice_candidate_servers(region: str, protocol: str, count: int) -> None:
    _default_emitter.notice_candidate_servers(region, protocol, count)


def notice_connecting_server(ip_address: str, region: str, protocol: str, fronting_address: str) -> None:
    _default_emitter.notice_connecting_server(ip_address, region, protocol, fronting_address)


def notice_active_tunnel(ip_address: str) -> None:
    _default_emitter.notice_active_tunnel(ip_address)


def notice_socks_proxy_port_in_use(port: int) -> None:
    _default_emitter.notice_socks_proxy_port_in_use(port)


def notice_listening_socks_proxy_port(port: int) -> None:
    _default_emitter.notice_listening_socks_proxy_port(port)


def notice_http_proxy_port_in_use(port: int) -> None:
    _default_emitter.notice_http_proxy_port_in_use(port)


def notice_listening_http_proxy_port(port: int) -> None:
    _default_emitter.notice_listening_http_proxy_port(port)


def notice_client_upgrade_available(version: str) -> None:
    _default_emitter.notice_client_upgrade_available(version)


def notice_homepage(url: str) -> None:
    _default_emitter.notice_homepage(url)


def notice_tunnels(count: int) -> None:
    """Active tunnel count; 0 is disconnected, 1 or more is connected."""
    _default_emitter.notice_tunnels(count)


def notice_untunneled(address: str) -> None:
    """Untunneled address notice. Alerting only; keep out of diagnostic logs."""
    _default_emitter.notice_untunneled(address)


def notice_split_tunnel_region(region: str) -> None:
    _default_emitter.notice_split_tunnel_region(region)

from __future__ import annotations

import io
import json
import logging
import threading
import time
from datetime import datetime, timezone

from tunnel_notices import emitter as emitter_module
from tunnel_notices.emitter import NoticeEmitter, _fallback_record, rfc3339_now
from tunnel_notices.models import NoticeType, TunnelsNotice

FIXED = datetime(2015, 1, 28, 17, 35, 13, 250_000, tzinfo=timezone.utc)


def _lines(buffer: io.BytesIO) -> list[dict]:
    return [json.loads(line) for line in buffer.getvalue().decode("utf-8").splitlines()]


class ByteAtATimeSink:
    """Sink that yields between bytes so unlocked writers would interleave."""

    def __init__(self) -> None:
        self.data = bytearray()

    def write(self, data: bytes) -> int:
        for value in data:
            self.data.append(value)
            time.sleep(0)
        return len(data)


class BrokenSink:
    def write(self, data: bytes) -> int:
        raise OSError("pipe closed")


def test_emit_writes_one_compact_line() -> None:
    buffer = io.BytesIO()
    emitter = NoticeEmitter(buffer, clock=lambda: FIXED)

    emitter.emit(NoticeType.INFO, False, "message", "shutdown operate tunnel")

    assert buffer.getvalue() == (
        b'{"noticeType":"Info","showUser":false,"data":{"message":"shutdown operate tunnel"},'
        b'"timestamp":"2015-01-28T17:35:13Z"}\n'
    )


def test_emit_round_trips_fields() -> None:
    buffer = io.BytesIO()
    emitter = NoticeEmitter(buffer)

    emitter.emit("CandidateServers", False, "region", "US", "protocol", "OSSH", "count", 12)

    [notice] = _lines(buffer)
    assert list(notice) == ["noticeType", "showUser", "data", "timestamp"]
    assert notice["noticeType"] == "CandidateServers"
    assert notice["showUser"] is False
    assert notice["data"] == {"region": "US", "protocol": "OSSH", "count": 12}
    assert notice["timestamp"].endswith("Z")


def test_emit_ignores_unpaired_and_non_string_names() -> None:
    buffer = io.BytesIO()
    emitter = NoticeEmitter(buffer)

    emitter.emit("Info", True, "message", "hello", 42, "dropped", "dangling")

    [notice] = _lines(buffer)
    assert notice["showUser"] is True
    assert notice["data"] == {"message": "hello"}


def test_newlines_in_values_stay_escaped() -> None:
    buffer = io.BytesIO()
    emitter = NoticeEmitter(buffer)

    emitter.notice_alert("line one\nline two")

    assert buffer.getvalue().count(b"\n") == 1
    assert _lines(buffer)[0]["data"]["message"] == "line one\nline two"


def test_unserializable_value_falls_back_to_alert(caplog) -> None:
    buffer = io.BytesIO()
    emitter = NoticeEmitter(buffer, clock=lambda: FIXED)

    with caplog.at_level(logging.WARNING, logger="tunnel_notices.emitter"):
        emitter.emit("Info", False, "message", object())

    [notice] = _lines(buffer)
    assert notice["noticeType"] == "Alert"
    assert notice["showUser"] is False
    assert notice["data"]["message"]
    assert notice["timestamp"] == "2015-01-28T17:35:13Z"
    assert any(record.getMessage() == "notice_serialization_failed" for record in caplog.records)


def test_fallback_record_escapes_error_text() -> None:
    line = _fallback_record(ValueError('bad "quote"\nsecond line'), "2015-01-28T17:35:13Z")

    assert "\n" not in line
    notice = json.loads(line)
    assert notice["noticeType"] == "Alert"
    assert notice["data"]["message"] == 'ValueError: bad "quote"\nsecond line'


def test_publish_uses_kind_defaults_and_override() -> None:
    buffer = io.BytesIO()
    emitter = NoticeEmitter(buffer)

    emitter.notice_untunneled("example.org:443")
    emitter.publish(TunnelsNotice(count=1), show_user=True)

    untunneled, tunnels = _lines(buffer)
    assert untunneled == {
        "noticeType": "Untunneled",
        "showUser": True,
        "data": {"address": "example.org:443"},
        "timestamp": untunneled["timestamp"],
    }
    assert tunnels["showUser"] is True
    assert tunnels["data"] == {"count": 1}


def test_typed_producers_cover_payload_fields() -> None:
    buffer = io.BytesIO()
    emitter = NoticeEmitter(buffer)

    emitter.notice_info("connected to %s in %d ms", "CA", 120)
    emitter.notice_connecting_server("192.0.2.1", "CA", "UNFRONTED-MEEK-OSSH", "")
    emitter.notice_listening_socks_proxy_port(1080)
    emitter.notice_http_proxy_port_in_use(8080)
    emitter.notice_homepage("https://example.org/")

    info, connecting, socks, http, homepage = _lines(buffer)
    assert info["data"] == {"message": "connected to CA in 120 ms"}
    assert connecting["data"]["frontingAddress"] == ""
    assert connecting["data"]["ipAddress"] == "192.0.2.1"
    assert socks == {**socks, "noticeType": "ListeningSocksProxyPort", "showUser": False, "data": {"port": 1080}}
    assert http["showUser"] is True
    assert homepage["data"] == {"url": "https://example.org/"}


def test_set_output_switches_sink_for_later_notices() -> None:
    first = io.BytesIO()
    second = io.BytesIO()
    emitter = NoticeEmitter(first)

    emitter.notice_tunnels(0)
    emitter.set_output(second)
    emitter.notice_tunnels(1)

    assert [n["data"]["count"] for n in _lines(first)] == [0]
    assert [n["data"]["count"] for n in _lines(second)] == [1]
    assert emitter.sink is second


def test_text_sinks_receive_str() -> None:
    stream = io.StringIO()
    emitter = NoticeEmitter(stream)

    emitter.notice_core_version("1.0.3")

    assert json.loads(stream.getvalue())["data"] == {"version": "1.0.3"}
    assert stream.getvalue().endswith("\n")


def test_write_failure_is_logged_not_raised(caplog) -> None:
    emitter = NoticeEmitter(BrokenSink())

    with caplog.at_level(logging.WARNING, logger="tunnel_notices.emitter"):
        emitter.notice_info("ignored")

    assert any(record.getMessage() == "notice_write_failed" for record in caplog.records)


def test_concurrent_emissions_never_interleave() -> None:
    sink = ByteAtATimeSink()
    emitter = NoticeEmitter(sink)
    callers = 32

    threads = [
        threading.Thread(target=emitter.emit, args=("Info", False, "message", f"caller-{index}" * 10))
        for index in range(callers)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    lines = sink.data.decode("utf-8").splitlines()
    assert len(lines) == callers
    messages = sorted(json.loads(line)["data"]["message"] for line in lines)
    assert messages == sorted(f"caller-{index}" * 10 for index in range(callers))


def test_mismatched_format_arguments_still_emit() -> None:
    buffer = io.BytesIO()
    emitter = NoticeEmitter(buffer)

    emitter.notice_alert("disk %s at 100%", "sda")
    emitter.notice_error("retry %d", "soon")

    alert, error = _lines(buffer)
    assert alert["noticeType"] == "Alert"
    assert alert["data"]["message"] == "disk %s at 100% ('sda',)"
    assert error["data"]["message"] == "retry %d ('soon',)"


def test_set_output_during_concurrent_emission_keeps_records_whole() -> None:
    sinks = [ByteAtATimeSink() for _ in range(3)]
    emitter = NoticeEmitter(sinks[0])
    writers = 8
    per_writer = 20
    done = threading.Event()

    def produce(index: int) -> None:
        for sequence in range(per_writer):
            emitter.emit("Info", False, "message", f"writer-{index}-{sequence}" * 5)

    def swap() -> None:
        position = 0
        while not done.is_set():
            position = (position + 1) % len(sinks)
            emitter.set_output(sinks[position])
            time.sleep(0)

    swapper = threading.Thread(target=swap)
    producers = [threading.Thread(target=produce, args=(index,)) for index in range(writers)]
    swapper.start()
    for thread in producers:
        thread.start()
    for thread in producers:
        thread.join()
    done.set()
    swapper.join()

    lines = [line for sink in sinks for line in sink.data.decode("utf-8").splitlines()]
    assert len(lines) == writers * per_writer
    messages = sorted(json.loads(line)["data"]["message"] for line in lines)
    assert messages == sorted(
        f"writer-{index}-{sequence}" * 5 for index in range(writers) for sequence in range(per_writer)
    )
    assert all(sink.data.endswith(b"\n") or not sink.data for sink in sinks)


def test_module_level_functions_use_default_emitter(monkeypatch) -> None:
    monkeypatch.setattr(emitter_module, "_default_emitter", NoticeEmitter())
    buffer = io.BytesIO()

    emitter_module.set_notice_output(buffer)
    emitter_module.notice_split_tunnel_region("CA")

    assert emitter_module.get_default_emitter().sink is buffer
    assert _lines(buffer)[0]["noticeType"] == "SplitTunnelRegion"


def test_rfc3339_now_is_utc_seconds() -> None:
    assert rfc3339_now(FIXED) == "2015-01-28T17:35:13Z"

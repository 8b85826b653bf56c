"""Wire envelope for notices and helpers for decoding raw notice records."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import NoticePayload, NoticeType, payload_model


class NoticeDecodeError(ValueError):
    """Raised when a record cannot be decoded as a notice."""


class NoticeEnvelope(BaseModel):
    """One notice as written to the output sink.

    Field order is the on-wire key order.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    notice_type: str = Field(default="", alias="noticeType")
    show_user: bool = Field(default=False, alias="showUser")
    data: Any = None
    timestamp: str = ""

    def to_json(self) -> str:
        """Serialize to a single compact line without the trailing delimiter."""
        return self.model_dump_json(by_alias=True)


@dataclass(slots=True, frozen=True)
class DecodedNotice:
    """A decoded envelope whose payload is still in serialized form."""

    notice_type: str
    show_user: bool
    raw_payload: str
    timestamp: str


_decoder = json.JSONDecoder()
_WHITESPACE = re.compile(r"[ \t\n\r]*")


def encode_raw(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _skip(text: str, index: int) -> int:
    return _WHITESPACE.match(text, index).end()


def raw_members(text: str) -> dict[str, str]:
    """Map each top-level key of a JSON object to its value's source text.

    Values are sliced out unchanged. A repeated key keeps its last value.
    Raises ``ValueError`` if ``text`` is not a single JSON object.
    """
    index = _skip(text, 0)
    if text[index : index + 1] != "{":
        raise ValueError("Expected a JSON object")
    index = _skip(text, index + 1)
    members: dict[str, str] = {}
    if text[index : index + 1] == "}":
        closed = index + 1
    else:
        while True:
            if text[index : index + 1] != '"':
                raise ValueError(f"Expected a member name at offset {index}")
            key, index = json.decoder.scanstring(text, index + 1)
            index = _skip(text, index)
            if text[index : index + 1] != ":":
                raise ValueError(f"Expected ':' at offset {index}")
            start = _skip(text, index + 1)
            _, end = _decoder.raw_decode(text, start)
            members[key] = text[start:end]
            index = _skip(text, end)
            separator = text[index : index + 1]
            if separator == "}":
                closed = index + 1
                break
            if separator != ",":
                raise ValueError(f"Expected ',' or '}}' at offset {index}")
            index = _skip(text, index + 1)
    if _skip(text, closed) != len(text):
        raise ValueError("Trailing data after JSON object")
    return members


def decode_envelope(record: bytes | str) -> DecodedNotice:
    """Parse exactly one notice record.

    Envelope fields that are absent decode to their zero values; anything that
    is not a JSON object with well-typed envelope fields is rejected. The
    ``data`` value is kept exactly as it appears in the record.
    """
    try:
        envelope = NoticeEnvelope.model_validate_json(record)
    except ValidationError as exc:
        raise NoticeDecodeError(f"Malformed notice record: {exc.error_count()} error(s)") from exc
    except RecursionError as exc:
        raise NoticeDecodeError("Notice record is nested too deeply") from exc
    try:
        text = record.decode("utf-8") if isinstance(record, bytes) else record
        members = raw_members(text)
    except (ValueError, RecursionError) as exc:
        raise NoticeDecodeError(f"Malformed notice record: {exc}") from exc
    return DecodedNotice(
        notice_type=envelope.notice_type,
        show_user=envelope.show_user,
        raw_payload=members.get("data", "null"),
        timestamp=envelope.timestamp,
    )


def decode_payload(decoded: DecodedNotice) -> NoticePayload:
    """Decode the deferred payload into the model registered for its kind."""
    try:
        model = payload_model(decoded.notice_type)
    except KeyError as exc:
        raise NoticeDecodeError(str(exc)) from exc
    try:
        return model.model_validate_json(decoded.raw_payload)
    except ValidationError as exc:
        raise NoticeDecodeError(f"Malformed {decoded.notice_type} payload") from exc


def extract_field(
    notice_type: str,
    raw_payload: str | bytes,
    expected_type: NoticeType | str,
    field_name: str,
) -> tuple[Any, bool]:
    """Return ``(value, True)`` when the payload holds ``field_name`` for ``expected_type``.

    Input is untrusted: a kind mismatch, malformed payload or missing field
    yields ``(None, False)``.
    """
    expected = expected_type.value if isinstance(expected_type, NoticeType) else expected_type
    if notice_type != expected:
        return None, False
    try:
        payload = json.loads(raw_payload)
    except (TypeError, ValueError, RecursionError):
        return None, False
    if not isinstance(payload, dict) or field_name not in payload:
        return None, False
    return payload[field_name], True
